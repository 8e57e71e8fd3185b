from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable

import asyncpg

from . import listeners, models, queries, utils
from .logconfig import logger as default_logger


class TableSubscriber:
    """
    Relays row level changes on PostgreSQL tables to registered callbacks.

    Callbacks are registered per table and event, e.g.
    `register_after_update("accounts", callback)`. `start` installs one
    trigger and trigger function per registered (timing, table, operation)
    and listens on the matching channel; `end` stops listening and, unless
    `Settings.keep_triggers` is set, drops the triggers again.

    Each callback receives the decoded notification payload,
    `{"record": row}` for inserts and deletes and
    `{"previous": old_row, "record": new_row}` for updates.

    Registrations are kept across `end`, a subsequent `start` installs
    them again. The instance holds no lock: calls to `start` and `end`
    must not overlap.

    Usage:
    ```python
    subscriber = TableSubscriber()
    subscriber.register_before_insert("orders", print)
    async with subscriber.running(models.Settings(keep_triggers=False)):
        ...
    ```
    """

    def __init__(
        self,
        registry: listeners.ListenerRegistry | None = None,
    ) -> None:
        self.registry = registry or listeners.ListenerRegistry()
        self.state = models.State.idle
        self._settings: models.Settings | None = None
        self._logger: models.InfoLogger = default_logger
        self._pg_connection: asyncpg.Connection | None = None
        self._routers = dict[
            models.PGChannel,
            Callable[[asyncpg.Connection, int, str, str], None],
        ]()

        self.add_listener = self.registry.add_listener
        self.register_before_insert = self.registry.register_before_insert
        self.register_before_update = self.registry.register_before_update
        self.register_before_delete = self.registry.register_before_delete
        self.register_after_insert = self.registry.register_after_insert
        self.register_after_update = self.registry.register_after_update
        self.register_after_delete = self.registry.register_after_delete

    async def start(self, settings: models.Settings) -> None:
        """
        Connect, then install and listen to every registered trigger.

        Triggers are handled one by one in registration order, each trigger
        is installed once regardless of how many callbacks it has. A failure
        aborts the remaining triggers and is raised; triggers already
        handled stay active and `end` can be used to clean up.
        """
        if self.state is not models.State.idle:
            raise RuntimeError(
                f"TableSubscriber can only be started when idle, not {self.state.value}."
            )

        self.state = models.State.starting
        self._settings = settings
        self._logger = settings.logger or default_logger

        self._pg_connection = None
        try:
            self._pg_connection = await utils.connect(settings)
        finally:
            if self._pg_connection is None:
                self.state = models.State.idle

        self._pg_connection.add_termination_listener(
            listeners._critical_termination_listener
        )

        try:
            for trigger, callbacks in self.registry:
                router = listeners.create_notification_router(
                    trigger.channel,
                    callbacks,
                )
                await self._create_trigger(trigger)
                await self._pg_connection.add_listener(trigger.channel, router)
                self._routers[trigger.channel] = router
                self._logger.info("Subscribed to: %s", trigger.channel)
        finally:
            self.state = models.State.running

    async def end(self) -> None:
        """
        Stop listening, close the connection and, unless `keep_triggers`
        is set, drop the triggers of every registration.
        """
        if self.state is not models.State.running:
            raise RuntimeError(
                f"TableSubscriber can only be ended when running, not {self.state.value}."
            )
        assert self._pg_connection is not None
        assert self._settings is not None

        self.state = models.State.ending
        try:
            try:
                if not self._pg_connection.is_closed():
                    for channel, router in self._routers.items():
                        await self._pg_connection.remove_listener(channel, router)
            finally:
                self._routers.clear()
                self._pg_connection.remove_termination_listener(
                    listeners._critical_termination_listener
                )
                await self._pg_connection.close()
                self._pg_connection = None

            if self._settings.keep_triggers:
                return

            for trigger in self.registry.triggers():
                await self._drop_trigger(trigger)
                self._logger.info("Cleanup trigger: %s", trigger.channel)
        finally:
            self.state = models.State.idle

    @asynccontextmanager
    async def running(
        self,
        settings: models.Settings,
    ) -> AsyncGenerator["TableSubscriber", None]:
        """
        Starts the subscriber on enter and ends it on exit. A start that
        fails part way is ended before the error is raised.
        """
        try:
            await self.start(settings)
        except BaseException:
            if self.state is models.State.running:
                await self.end()
            raise

        try:
            yield self
        finally:
            await self.end()

    def connection_healthy(self) -> bool:
        return bool(self._pg_connection and not self._pg_connection.is_closed())

    async def _create_trigger(self, trigger: models.TriggerId) -> None:
        assert self._settings is not None
        await utils.run_transaction(self._settings, queries.create_statements(trigger))

    async def _drop_trigger(self, trigger: models.TriggerId) -> None:
        assert self._settings is not None
        await utils.run_transaction(self._settings, queries.drop_statements(trigger))
