"""In-process publish/subscribe broker for game events.

Delivery is synchronous: :meth:`EventBus.publish` returns only after every
handler registered for the event type has run. Events published from inside a
handler are queued and dispatched once the in-flight event has reached all of
its handlers, so nested publishing never reorders or starves earlier
deliveries.
"""

from __future__ import annotations

import itertools
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType

    from guildrank_backend.shared.enums import GameEventType
    from guildrank_backend.shared.events import GameEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[["GameEvent"], None]
ErrorReporter = Callable[["HandlerFailure"], None]


@dataclass(frozen=True, slots=True)
class SubscriptionHandle:
    """Opaque token identifying a single registration."""

    identifier: int
    event_type: GameEventType


@dataclass(frozen=True, slots=True)
class HandlerFailure:
    """Describes a handler that raised while an event was dispatched."""

    event: GameEvent
    handle: SubscriptionHandle
    error: Exception


@dataclass(slots=True)
class _Registration:
    handle: SubscriptionHandle
    handler: EventHandler
    once: bool = False
    active: bool = field(default=True)


class EventBus:
    """Synchronous publish/subscribe bus keyed by :class:`GameEventType`."""

    def __init__(self, *, error_reporter: ErrorReporter | None = None) -> None:
        self._registrations: dict[GameEventType, list[_Registration]] = {}
        self._ids = itertools.count(1)
        self._queue: deque[GameEvent] = deque()
        self._dispatching = False
        self._error_reporter = error_reporter

    def subscribe(
        self, event_type: GameEventType, handler: EventHandler
    ) -> SubscriptionHandle:
        """Register *handler* for *event_type* and return its handle."""
        return self._register(event_type, handler, once=False)

    def once(
        self, event_type: GameEventType, handler: EventHandler
    ) -> SubscriptionHandle:
        """Register *handler* to run for the next *event_type* event only."""
        return self._register(event_type, handler, once=True)

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        """Remove the registration behind *handle*.

        Returns ``False`` when the handle was already released.
        """
        registrations = self._registrations.get(handle.event_type)
        if not registrations:
            return False
        for registration in registrations:
            if registration.handle == handle:
                registration.active = False
                registrations.remove(registration)
                if not registrations:
                    del self._registrations[handle.event_type]
                logger.debug(
                    "Released subscription %s for '%s'",
                    handle.identifier,
                    handle.event_type,
                )
                return True
        return False

    def scope(self) -> SubscriptionScope:
        """Return a scope that releases its subscriptions on exit."""
        return SubscriptionScope(self)

    def publish(self, event: GameEvent) -> None:
        """Deliver *event* to every handler currently registered for its type."""
        self._queue.append(event)
        if self._dispatching:
            logger.debug("Queued nested '%s' event", event.type)
            return

        self._dispatching = True
        try:
            while self._queue:
                self._dispatch(self._queue.popleft())
        finally:
            self._dispatching = False

    def subscriber_count(self, event_type: GameEventType | None = None) -> int:
        """Return the number of live registrations, optionally for one type."""
        if event_type is not None:
            return len(self._registrations.get(event_type, ()))
        return sum(len(items) for items in self._registrations.values())

    def clear(self) -> None:
        """Drop every registration."""
        for registrations in self._registrations.values():
            for registration in registrations:
                registration.active = False
        self._registrations.clear()

    def _register(
        self, event_type: GameEventType, handler: EventHandler, *, once: bool
    ) -> SubscriptionHandle:
        handle = SubscriptionHandle(identifier=next(self._ids), event_type=event_type)
        self._registrations.setdefault(event_type, []).append(
            _Registration(handle=handle, handler=handler, once=once)
        )
        logger.debug(
            "Subscribed handler %r to '%s' (handle %s)",
            handler,
            event_type,
            handle.identifier,
        )
        return handle

    def _dispatch(self, event: GameEvent) -> None:
        registrations = list(self._registrations.get(event.type, ()))
        if not registrations:
            logger.debug("Published '%s' with no subscribers", event.type)
            return

        logger.debug(
            "Dispatching '%s' to %d handlers", event.type, len(registrations)
        )
        for registration in registrations:
            # Unsubscribed by an earlier handler of this same dispatch.
            if not registration.active:
                continue
            if registration.once:
                self.unsubscribe(registration.handle)
            try:
                registration.handler(event)
            except Exception as exc:
                logger.exception(
                    "Handler %r failed while handling '%s'",
                    registration.handler,
                    event.type,
                )
                self._report(HandlerFailure(event, registration.handle, exc))

    def _report(self, failure: HandlerFailure) -> None:
        if self._error_reporter is None:
            return
        try:
            self._error_reporter(failure)
        except Exception:
            logger.exception("Error reporter failed for '%s'", failure.event.type)


class SubscriptionScope:
    """Group of subscriptions released together when the owner goes away.

    Use as a context manager around a component's lifetime::

        with bus.scope() as scope:
            scope.subscribe(GameEventType.PHASE_CHANGED, on_phase)
            ...
    """

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._handles: list[SubscriptionHandle] = []

    def subscribe(
        self, event_type: GameEventType, handler: EventHandler
    ) -> SubscriptionHandle:
        """Subscribe through the owning bus and track the handle."""
        handle = self._bus.subscribe(event_type, handler)
        self._handles.append(handle)
        return handle

    def subscribe_many(
        self, event_types: Iterable[GameEventType], handler: EventHandler
    ) -> tuple[SubscriptionHandle, ...]:
        """Subscribe *handler* to each of *event_types*."""
        return tuple(self.subscribe(event_type, handler) for event_type in event_types)

    def close(self) -> None:
        """Release every tracked subscription."""
        while self._handles:
            self._bus.unsubscribe(self._handles.pop())

    @property
    def size(self) -> int:
        """Return the number of subscriptions still held."""
        return len(self._handles)

    def __enter__(self) -> SubscriptionScope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()


__all__ = [
    "ErrorReporter",
    "EventBus",
    "EventHandler",
    "HandlerFailure",
    "SubscriptionHandle",
    "SubscriptionScope",
]
