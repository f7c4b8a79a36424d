"""Event emitter for publishing domain events.

The emitter provides:
- Handler registration with type filtering
- Category-based routing
- Error isolation (handler failures don't break other handlers)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar, Union

from finance_gateway.events.types import DomainEvent, EventCategory

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=DomainEvent)

EventHandler = Callable[[DomainEvent], Union[None, Awaitable[None]]]


@dataclass
class HandlerRegistration:
    """Registration of an event handler."""

    handler: EventHandler
    event_types: set[str] | None  # None = all events
    categories: set[EventCategory] | None  # None = all categories


class EventEmitter:
    """Asynchronous event emitter.

    Accepts both plain and coroutine handlers. Handlers are isolated:
    if one fails, the others still receive the event and the caller's
    operation is unaffected.

    Usage:
        emitter = EventEmitter()

        async def notify(event: TransferConfirmed) -> None:
            await send_receipt(event)

        emitter.on(TransferConfirmed, notify)
        await emitter.emit(event)
    """

    def __init__(self) -> None:
        self._handlers: list[HandlerRegistration] = []

    def on(self, event_type: type[T] | list[type[T]], handler: EventHandler) -> None:
        """Register handler for specific event type(s)."""
        if isinstance(event_type, list):
            types = {t.__name__ for t in event_type}
        else:
            types = {event_type.__name__}
        self._handlers.append(HandlerRegistration(handler, types, None))

    def on_category(
        self,
        category: EventCategory | list[EventCategory],
        handler: EventHandler,
    ) -> None:
        """Register handler for event category(ies)."""
        cats = set(category) if isinstance(category, list) else {category}
        self._handlers.append(HandlerRegistration(handler, None, cats))

    def on_all(self, handler: EventHandler) -> None:
        self._handlers.append(HandlerRegistration(handler, None, None))

    def off(self, handler: EventHandler) -> None:
        """Unregister a handler."""
        self._handlers = [reg for reg in self._handlers if reg.handler is not handler]

    async def emit(self, event: DomainEvent) -> list[Exception]:
        """Emit an event to all matching handlers.

        Returns list of any exceptions raised by handlers.
        """
        errors: list[Exception] = []
        pending: list[Awaitable[Any]] = []

        for reg in self._handlers:
            if reg.event_types and event.event_type not in reg.event_types:
                continue
            if reg.categories and event.category not in reg.categories:
                continue
            try:
                result = reg.handler(event)
            except Exception as e:
                logger.exception("Handler %s failed for event %s", reg.handler, event.event_type)
                errors.append(e)
                continue
            if asyncio.iscoroutine(result):
                pending.append(self._call_async(reg.handler, result, event))

        if pending:
            results = await asyncio.gather(*pending, return_exceptions=True)
            errors.extend(r for r in results if isinstance(r, Exception))
        return errors

    async def _call_async(
        self, handler: EventHandler, coro: Awaitable[None], event: DomainEvent
    ) -> None:
        try:
            await coro
        except Exception:
            logger.exception("Async handler %s failed for event %s", handler, event.event_type)
            raise
