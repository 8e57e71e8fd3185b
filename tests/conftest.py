import os
from typing import AsyncGenerator

import asyncpg
import pytest
from pgtablewatch import models, queries


@pytest.fixture(scope="function")
async def pgconn() -> AsyncGenerator[asyncpg.Connection, None]:
    conn = await asyncpg.connect()
    try:
        yield conn
    finally:
        await conn.close()


@pytest.fixture(scope="function")
async def pgpool() -> AsyncGenerator[asyncpg.Pool, None]:
    async with asyncpg.create_pool() as pool:
        yield pool


@pytest.fixture(scope="function", autouse=True)
def set_pg_envs(monkeypatch: pytest.MonkeyPatch) -> None:
    Unset = object()

    if os.environ.get("PGHOST", Unset) is Unset:
        monkeypatch.setenv("PGHOST", "localhost")

    if os.environ.get("PGUSER", Unset) is Unset:
        monkeypatch.setenv("PGUSER", "testuser")

    if os.environ.get("PGPASSWORD", Unset) is Unset:
        monkeypatch.setenv("PGPASSWORD", "testpassword")

    if os.environ.get("PGDATABASE", Unset) is Unset:
        monkeypatch.setenv("PGDATABASE", "testdb")


@pytest.fixture(scope="function")
def settings() -> models.Settings:
    return models.Settings()


@pytest.fixture(scope="function")
async def orders(pgconn: asyncpg.Connection) -> AsyncGenerator[str, None]:
    await pgconn.execute(
        "CREATE TABLE orders (id SERIAL PRIMARY KEY, item TEXT NOT NULL)"
    )
    try:
        yield "orders"
    finally:
        await pgconn.execute("DROP TABLE IF EXISTS orders CASCADE")


@pytest.fixture(scope="function")
async def accounts(pgconn: asyncpg.Connection) -> AsyncGenerator[str, None]:
    await pgconn.execute(
        "CREATE TABLE accounts (id INT PRIMARY KEY, balance INT NOT NULL)"
    )
    await pgconn.execute("INSERT INTO accounts (id, balance) VALUES (1, 100)")
    try:
        yield "accounts"
    finally:
        await pgconn.execute("DROP TABLE IF EXISTS accounts CASCADE")


async def trigger_installed(
    conn: asyncpg.Connection,
    trigger: models.TriggerId,
) -> tuple[bool, bool]:
    return (
        await conn.fetchval(queries.trigger_exists(), trigger.channel),
        await conn.fetchval(queries.function_exists(), trigger.channel),
    )
