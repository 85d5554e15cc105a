from __future__ import annotations

import asyncio
import inspect
from typing import Awaitable, Callable, TypeVar

from loguru import logger

EventT = TypeVar("EventT")
EventHandler = Callable[[EventT], Awaitable[None] | None]


class InProcessEventBus:
    """Synchronous-publish event bus; handlers run on the next loop iteration when a loop is running."""

    def __init__(self) -> None:
        self._subscribers: list[tuple[type, EventHandler]] = []
        self._pending: set[asyncio.Task] = set()

    def publish(self, event: object) -> None:
        if not self._subscribers:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for event_type, handler in list(self._subscribers):
            if not isinstance(event, event_type):
                continue
            if loop and loop.is_running():
                loop.call_soon(self._dispatch, handler, event)
            else:
                self._dispatch(handler, event)

    def subscribe(self, event_type: type[EventT], handler: EventHandler[EventT]) -> Callable[[], None]:
        entry = (event_type, handler)
        self._subscribers.append(entry)

        def _unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return _unsubscribe

    async def drain(self) -> None:
        """Let queued handlers run and wait for any async handlers they started."""
        await asyncio.sleep(0)
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _dispatch(self, handler: EventHandler, event: object) -> None:
        try:
            result = handler(event)
        except Exception:
            logger.exception(
                f"[event bus] handler error (event={type(event).__name__}, handler={_handler_name(handler)})"
            )
            return

        if inspect.isawaitable(result):
            try:
                task = asyncio.create_task(result)  # type: ignore[arg-type]
            except RuntimeError:
                asyncio.run(result)  # type: ignore[arg-type]
                return
            self._pending.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("[event bus] async handler error")


def _handler_name(handler: EventHandler) -> str:
    name = getattr(handler, "__name__", None)
    if name:
        return name
    return handler.__class__.__name__
