"""Capacity-bounded in-memory event store."""
import threading
from collections import OrderedDict
from typing import Callable, List
import structlog
from .base import DuplicateEventError, EventStore, QueryResult
from ..event_models import Event

log = structlog.get_logger()


class BoundedEventStore(EventStore):
    """
    Thread-safe in-memory store holding at most ``capacity`` events.

    Events live in an OrderedDict keyed by id, so lookups are O(1) and the
    oldest insertion is always at the front. When the store is full, ``save``
    evicts from the front before inserting. Insertion order is the order in
    which callers acquired the lock.

    Events are deep-copied on the way in and on the way out, so callers never
    share a payload with the store.
    """

    def __init__(self, capacity: int = 10000, on_evict: Callable[[Event], None] | None = None):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._on_evict = on_evict
        self._events: "OrderedDict[str, Event]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def save(self, event: Event) -> Event:
        evicted: List[Event] = []
        with self._lock:
            if event.id in self._events:
                raise DuplicateEventError(event.id)
            while len(self._events) >= self._capacity:
                _, oldest = self._events.popitem(last=False)
                evicted.append(oldest)
            self._events[event.id] = event.model_copy(deep=True)

        for old in evicted:
            log.warning("webhook.evicted", id=old.id, capacity=self._capacity)
            if self._on_evict is not None:
                self._on_evict(old)
        log.debug("webhook.saved", id=event.id)
        return event

    def get_by_id(self, event_id: str) -> Event | None:
        with self._lock:
            event = self._events.get(event_id)
        return event.model_copy(deep=True) if event is not None else None

    def delete(self, event_id: str) -> bool:
        with self._lock:
            removed = self._events.pop(event_id, None)
        if removed is None:
            return False
        log.info("webhook.deleted", id=event_id)
        return True

    def query(
        self,
        page: int = 1,
        limit: int = 10,
        source: str | None = None,
        event_type: str | None = None,
    ) -> QueryResult:
        with self._lock:
            snapshot = list(self._events.values())

        # newest insertion first, so the stable sort breaks received_at ties
        # in reverse insertion order
        matches = [
            e
            for e in reversed(snapshot)
            if (not source or e.source == source)
            and (not event_type or e.event_type == event_type)
        ]
        matches.sort(key=lambda e: e.received_at, reverse=True)

        start = (page - 1) * limit
        page_items = [e.model_copy(deep=True) for e in matches[start:start + limit]]
        return QueryResult(items=page_items, total=len(matches))

    def count(self) -> int:
        with self._lock:
            return len(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
        log.info("webhook.store_cleared")

    def health_check(self) -> bool:
        """In-memory store is always healthy."""
        return True
