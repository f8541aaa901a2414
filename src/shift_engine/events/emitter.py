"""Synchronous publisher for shift engine domain events.

Events describe committed facts, so they are published only after the unit
of work that produced them commits. Subscribers are notification and
reputation side channels: a failing subscriber is logged and skipped, and
never affects the booking that raised the event.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Iterable, TypeVar

from shift_engine.events.types import DomainEvent, EventCategory

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=DomainEvent)

EventHandler = Callable[[DomainEvent], None]


class EventEmitter:
    """Routes events to subscribers by event type, category, or both.

    Usage:
        emitter = EventEmitter()
        emitter.on(StandbyPromoted, notify_worker)
        emitter.on_category(EventCategory.REPUTATION, update_reputation)

        with emitter.batch() as batch:
            batch.add(ApplicationCancelled(...))
            batch.add(StandbyPromoted(...))
        # published here, in order, unless the block raised
    """

    def __init__(self) -> None:
        self._by_type: dict[str, list[EventHandler]] = defaultdict(list)
        self._by_category: dict[EventCategory, list[EventHandler]] = defaultdict(list)
        self._wildcard: list[EventHandler] = []

    def on(self, event_type: type[E] | Iterable[type[E]], handler: EventHandler) -> None:
        """Subscribe to one event class or several."""
        classes = [event_type] if isinstance(event_type, type) else list(event_type)
        for cls in classes:
            self._by_type[cls.__name__].append(handler)

    def on_category(
        self,
        category: EventCategory | Iterable[EventCategory],
        handler: EventHandler,
    ) -> None:
        """Subscribe to every event in one category or several."""
        categories = [category] if isinstance(category, EventCategory) else list(category)
        for cat in categories:
            self._by_category[cat].append(handler)

    def on_all(self, handler: EventHandler) -> None:
        self._wildcard.append(handler)

    def off(self, handler: EventHandler) -> None:
        """Remove a handler from every subscription it holds."""
        for handlers in (*self._by_type.values(), *self._by_category.values(), self._wildcard):
            while handler in handlers:
                handlers.remove(handler)

    def subscribers(self, event: DomainEvent) -> list[EventHandler]:
        """Handlers that receive ``event``, each at most once."""
        matched: list[EventHandler] = []
        for handler in (
            *self._by_type.get(event.event_type, ()),
            *self._by_category.get(event.category, ()),
            *self._wildcard,
        ):
            if handler not in matched:
                matched.append(handler)
        return matched

    def emit(self, event: DomainEvent) -> list[Exception]:
        """Publish ``event`` now and return the errors its handlers raised."""
        failures: list[Exception] = []
        for handler in self.subscribers(event):
            try:
                handler(event)
            except Exception as e:
                logger.exception(
                    "Subscriber %r failed on %s (event %s)",
                    handler,
                    event.event_type,
                    event.metadata.event_id,
                )
                failures.append(e)
        return failures

    def batch(self) -> EventBatch:
        """Collect events for one unit of work."""
        return EventBatch(self)


class EventBatch:
    """Holds a unit of work's events until it finishes without error.

    Each batch owns its buffer, so concurrent operations sharing one emitter
    never publish each other's events.
    """

    def __init__(self, emitter: EventEmitter) -> None:
        self._emitter = emitter
        self._pending: list[DomainEvent] = []
        self.errors: list[Exception] = []

    def __enter__(self) -> EventBatch:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        pending, self._pending = self._pending, []
        if exc_type is not None:
            logger.debug("Discarding %d event(s) from a failed unit of work", len(pending))
            return
        for event in pending:
            self.errors.extend(self._emitter.emit(event))

    def add(self, event: DomainEvent) -> None:
        self._pending.append(event)

    @property
    def pending(self) -> list[DomainEvent]:
        """Events collected so far and not yet published."""
        return list(self._pending)
