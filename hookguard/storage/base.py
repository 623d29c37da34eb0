"""Base interface for webhook event stores."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List
from ..event_models import Event


@dataclass(frozen=True)
class QueryResult:
    """One page of a filtered query plus the number of matches before paging."""

    items: List[Event] = field(default_factory=list)
    total: int = 0


class DuplicateEventError(Exception):
    """Raised when an event id is saved twice."""


class EventStore(ABC):
    """Abstract interface for event store implementations."""

    @abstractmethod
    def save(self, event: Event) -> Event:
        """
        Insert an event, evicting the oldest one if the store is full.

        Args:
            event: The accepted event

        Returns:
            The saved event
        """

    @abstractmethod
    def get_by_id(self, event_id: str) -> Event | None:
        """Return the event with ``event_id`` or None."""

    @abstractmethod
    def delete(self, event_id: str) -> bool:
        """
        Remove an event.

        Returns:
            True if an event was removed, False if none had that id
        """

    @abstractmethod
    def query(
        self,
        page: int = 1,
        limit: int = 10,
        source: str | None = None,
        event_type: str | None = None,
    ) -> QueryResult:
        """
        Filter, sort newest first and paginate.

        Args:
            page: 1-based page number
            limit: Page size
            source: Exact source to match, if given
            event_type: Exact event type to match, if given

        Returns:
            The requested page and the total number of matches
        """

    @abstractmethod
    def count(self) -> int:
        """Current number of stored events."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every event."""

    @abstractmethod
    def health_check(self) -> bool:
        """
        Check if the store is usable.

        Returns:
            True if healthy, False otherwise
        """
