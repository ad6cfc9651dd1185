"""Who may see what about an event's participants."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

from sessionstore.models.event import Event


class Visibility(enum.Enum):
    NONE = "none"
    COUNT_ONLY = "count_only"
    FULL = "full"


def visibility_for(event: Event, viewer_id: int) -> Visibility:
    """Participants see the roster; a creator who left still sees the headcount."""
    if viewer_id in event.participants:
        return Visibility.FULL
    if viewer_id == event.created_by:
        return Visibility.COUNT_ONLY
    return Visibility.NONE


@dataclass(frozen=True)
class EventView:
    """An event as one viewer is allowed to see it.

    ``participant_count`` is set for FULL and COUNT_ONLY, ``participant_ids``
    only for FULL.
    """

    event_id: str
    scenario_name: str
    system_name: str | None
    gamemaster_name: str | None
    created_by: int
    scheduled_at: datetime | None
    notified: bool
    private_room_id: int | None
    visibility: Visibility
    participant_count: int | None = None
    participant_ids: tuple[int, ...] | None = None

    @property
    def joined(self) -> bool:
        return self.visibility is Visibility.FULL

    @property
    def is_creator_view(self) -> bool:
        return self.visibility is Visibility.COUNT_ONLY


def view_of(event: Event, viewer_id: int) -> EventView:
    visibility = visibility_for(event, viewer_id)
    count = len(event.participants) if visibility is not Visibility.NONE else None
    ids = tuple(sorted(event.participants)) if visibility is Visibility.FULL else None
    return EventView(
        event_id=event.id,
        scenario_name=event.scenario_name,
        system_name=event.system_name,
        gamemaster_name=event.gamemaster_name,
        created_by=event.created_by,
        scheduled_at=event.scheduled_at,
        notified=event.notified,
        private_room_id=event.private_room_id,
        visibility=visibility,
        participant_count=count,
        participant_ids=ids,
    )
