"""Data models for events, guild_configs and board_states tables."""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from datetime import datetime


class _Unset(enum.Enum):
    """Marker for keyword arguments that were not supplied."""

    UNSET = enum.auto()

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset.UNSET


@dataclass
class Event:
    """One scheduled tabletop session."""

    id: str
    guild_id: int
    scenario_name: str
    created_by: int
    private_room_id: int | None = None
    scheduled_at: datetime | None = None  # UTC
    system_name: str | None = None
    gamemaster_name: str | None = None
    participants: set[int] = field(default_factory=set)
    notified: bool = False

    def copy(self) -> Event:
        return copy.deepcopy(self)


@dataclass
class ServerConfig:
    """Per-guild settings. ``None`` means not configured."""

    guild_id: int
    notification_channel_id: int | None = None
    event_category_id: int | None = None
    board_channel_id: int | None = None


@dataclass
class BoardState:
    """Location of the guild's live board message."""

    guild_id: int
    channel_id: int | None = None
    message_id: int | None = None
