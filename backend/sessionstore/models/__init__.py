"""Data models shared by the session bot services."""

from .event import UNSET, BoardState, Event, ServerConfig

__all__ = [
    "BoardState",
    "Event",
    "ServerConfig",
    "UNSET",
]
