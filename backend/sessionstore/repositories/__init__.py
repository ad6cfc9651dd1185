"""Repository layer for the session bot."""

from .event import EventRepository, EventStore
from .postgres import PostgresEventStore

__all__ = [
    "EventRepository",
    "EventStore",
    "PostgresEventStore",
]
