from typing import Sequence

import asyncpg

from pgtablewatch import models
from pgtablewatch.logconfig import logger


async def connect(settings: models.Settings) -> asyncpg.Connection:
    """
    Open a connection using the connection fields of `settings`.
    """
    return await asyncpg.connect(**settings.connect_kwargs())


async def run_transaction(
    settings: models.Settings,
    queries: Sequence[str],
) -> None:
    """
    Execute `queries` in order within one transaction on a dedicated connection.

    Either every statement is committed or, on the first failure, the
    transaction is rolled back and the original error is raised. The
    connection is closed on every path.
    """
    conn = await connect(settings)
    try:
        transaction = conn.transaction()
        await transaction.start()
        try:
            for query in queries:
                await conn.execute(query)
        except Exception:
            try:
                await transaction.rollback()
            except Exception:
                logger.exception("Rollback failed.")
            raise
        else:
            await transaction.commit()
    finally:
        await conn.close()
