"""Due-event notifications.

Each pass walks every guild with a notification channel and announces
events whose time has come, at most once per event. Events found more
than ``grace`` past their time are skipped for good.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from sessionstore.models.event import Event
from sessionstore.repositories import EventRepository

from .channels import ChannelService
from .errors import ChannelServiceError
from .rendering import render_due_notice

logger = logging.getLogger(__name__)


class DueState(enum.Enum):
    UNDATED = "undated"
    FUTURE = "future"
    DUE = "due"
    MISSED = "missed"
    NOTIFIED = "notified"


def classify(event: Event, now: datetime, grace: timedelta) -> DueState:
    if event.notified:
        return DueState.NOTIFIED
    if event.scheduled_at is None:
        return DueState.UNDATED
    if event.scheduled_at > now:
        return DueState.FUTURE
    if now - event.scheduled_at <= grace:
        return DueState.DUE
    return DueState.MISSED


class NotificationScheduler:
    def __init__(
        self,
        repo: EventRepository,
        channels: ChannelService,
        zone: ZoneInfo,
        *,
        grace: timedelta = timedelta(seconds=60),
    ):
        self.repo = repo
        self.channels = channels
        self.zone = zone
        self.grace = grace

        self.last_pass_at: datetime | None = None
        self.sent_total = 0
        self._missed: set[str] = set()

    async def run_pass(self, now: datetime | None = None) -> int:
        """Run one pass and return the number of notifications sent."""
        now = now or datetime.now(timezone.utc)
        sent = 0
        for guild_id in self.repo.guild_ids():
            try:
                sent += await self._run_guild(guild_id, now)
            except Exception:
                logger.exception(f"Notification pass failed for guild {guild_id}")

        self.last_pass_at = now
        self.sent_total += sent
        if sent:
            logger.info(f"Sent {sent} due notification(s)")
        return sent

    async def _run_guild(self, guild_id: int, now: datetime) -> int:
        channel_id = self.repo.get_config(guild_id).notification_channel_id
        if channel_id is None:
            return 0

        sent = 0
        for event in self.repo.load_events(guild_id):
            state = classify(event, now, self.grace)
            if state is DueState.MISSED:
                if event.id not in self._missed:
                    self._missed.add(event.id)
                    logger.warning(
                        f"Event {event.id} in guild {guild_id} was due at "
                        f"{event.scheduled_at.isoformat()}, past the grace window; not notifying"
                    )
                continue
            if state is not DueState.DUE:
                continue
            if await self._notify(guild_id, channel_id, event.id, now):
                sent += 1
        return sent

    async def _notify(self, guild_id: int, channel_id: int, event_id: str, now: datetime) -> bool:
        async with self.repo.lock_for(guild_id):
            # Re-read under the lock; the event may have been edited or removed
            events = self.repo.load_events(guild_id)
            event = next((ev for ev in events if ev.id == event_id), None)
            if event is None or classify(event, now, self.grace) is not DueState.DUE:
                return False

            try:
                await self.channels.send_message(channel_id, render_due_notice(event, self.zone))
            except ChannelServiceError as e:
                logger.warning(f"Due notice for event {event_id} in guild {guild_id} failed: {e}")
                return False

            event.notified = True
            self.repo.replace_events(guild_id, events)

        await self.repo.flush_events(guild_id)
        logger.info(f"Notified event {event_id} in guild {guild_id}")
        return True
