from .base import EventStore, QueryResult, DuplicateEventError
from .memory import BoundedEventStore

__all__ = ["EventStore", "QueryResult", "DuplicateEventError", "BoundedEventStore"]
