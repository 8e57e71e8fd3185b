import asyncio
import inspect
import json
from typing import Any, Awaitable, Callable, Iterator, Sequence

import asyncpg

from . import models
from .logconfig import logger

Payload = dict[str, Any]
Callback = Callable[[Payload], None | Awaitable[None]]


def _critical_termination_listener(*_: object, **__: object) -> None:
    # Module level so every subscriber registers the same function;
    # asyncpg keeps termination listeners in a set.
    logger.critical("Connection is closed / terminated.")


class ListenerRegistry:
    """
    Callbacks registered per trigger, in registration order.

    A callback registered twice for the same trigger is kept once. The
    registry is only ever added to; `TableSubscriber` reads it on every
    start and never clears it.
    """

    def __init__(self) -> None:
        # dicts as insertion ordered sets.
        self._listeners = dict[models.TriggerId, dict[Callback, None]]()

    def add_listener(
        self,
        trigger: models.TriggerId | None,
        callback: Callback | None,
    ) -> None:
        if not trigger or not callback:
            return
        self._listeners.setdefault(trigger, {})[callback] = None

    def _register(
        self,
        timing: models.TIMINGS,
        operation: models.OPERATIONS,
        table: str,
        callback: Callback | None,
    ) -> None:
        if not table or not callback:
            return

        trigger = models.TriggerId(timing=timing, table=table, operation=operation)
        if trigger.ambiguous:
            logger.warning(
                "Table `%s` contains an underscore, channel `%s` can not be "
                "split back into timing, table and operation.",
                table,
                trigger.channel,
            )
        self.add_listener(trigger, callback)

    def register_before_insert(self, table: str, callback: Callback) -> None:
        self._register("before", "insert", table, callback)

    def register_before_update(self, table: str, callback: Callback) -> None:
        self._register("before", "update", table, callback)

    def register_before_delete(self, table: str, callback: Callback) -> None:
        self._register("before", "delete", table, callback)

    def register_after_insert(self, table: str, callback: Callback) -> None:
        self._register("after", "insert", table, callback)

    def register_after_update(self, table: str, callback: Callback) -> None:
        self._register("after", "update", table, callback)

    def register_after_delete(self, table: str, callback: Callback) -> None:
        self._register("after", "delete", table, callback)

    def triggers(self) -> list[models.TriggerId]:
        return list(self._listeners)

    def callbacks(self, trigger: models.TriggerId) -> tuple[Callback, ...]:
        return tuple(self._listeners.get(trigger, ()))

    def __iter__(self) -> Iterator[tuple[models.TriggerId, tuple[Callback, ...]]]:
        for trigger, callbacks in self._listeners.items():
            yield trigger, tuple(callbacks)

    def __len__(self) -> int:
        return len(self._listeners)

    def __contains__(self, trigger: object) -> bool:
        return trigger in self._listeners


def _invoke(
    callback: Callback,
    payload: Payload,
    pending: set[asyncio.Future],
) -> None:
    result = callback(payload)
    if inspect.isawaitable(result):
        task = asyncio.ensure_future(result)
        pending.add(task)
        task.add_done_callback(pending.discard)


def create_notification_router(
    channel: models.PGChannel,
    callbacks: Sequence[Callback],
) -> Callable[
    [
        asyncpg.Connection,
        int,
        str,
        str,
    ],
    None,
]:
    """
    Creates an asyncpg listener that decodes the JSON payload of a
    notification and hands it to every callback, in registration order.

    Callbacks are scheduled on the event loop rather than called inline,
    so one failing callback does not keep the rest from running. Errors
    raised by callbacks are not caught; they reach the event loop's
    exception handler. Payloads that are not valid JSON are logged and
    dropped.
    """
    bound = tuple(callbacks)
    pending = set[asyncio.Future]()

    def route(
        connection: asyncpg.Connection,
        pid: int,
        channel_: str,
        payload: str,
    ) -> None:
        try:
            parsed = json.loads(payload)
        except ValueError:
            logger.exception(
                "Failed to parse payload: `%s` from `%s`.",
                payload,
                channel,
            )
            return

        logger.debug("Routing `%s` to %d callback(s).", channel, len(bound))

        loop = asyncio.get_running_loop()
        for callback in bound:
            loop.call_soon(_invoke, callback, parsed, pending)

    return route
