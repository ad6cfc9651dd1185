"""Event lifecycle: create, edit, remove, join, leave, view.

Core state is committed first under the guild lock. Room access changes
are awaited but never fail the operation; board refreshes and
announcements run in the background and only log on failure.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from sessionstore.models.event import UNSET, Event, ServerConfig
from sessionstore.repositories import EventRepository

from .board import BoardPublisher
from .channels import ChannelService
from .errors import (
    ChannelServiceError,
    ConfigurationMissingError,
    ExternalSideEffectError,
    NotFoundError,
    ValidationError,
)
from .rendering import (
    parse_local,
    render_created_announcement,
    render_join_notice,
    render_room_welcome,
    sort_for_display,
)
from .rooms import RoomMode, RoomProvisioner
from .visibility import EventView, view_of

logger = logging.getLogger(__name__)

DateInput = datetime | str | None


@dataclass
class EventFields:
    """Input for a new event. ``scheduled_at`` may be local ``yyyy-MM-dd HH:mm`` text."""

    scenario_name: str
    scheduled_at: DateInput = None
    system_name: str | None = None
    gamemaster_name: str | None = None


@dataclass
class EventChanges:
    """Partial update. UNSET leaves a field alone; empty text or None clears it."""

    scenario_name: str = UNSET  # type: ignore[assignment]
    scheduled_at: DateInput = UNSET  # type: ignore[assignment]
    system_name: str | None = UNSET  # type: ignore[assignment]
    gamemaster_name: str | None = UNSET  # type: ignore[assignment]


def _new_event_id() -> str:
    return secrets.token_hex(7)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class EventService:
    def __init__(
        self,
        repo: EventRepository,
        channels: ChannelService,
        rooms: RoomProvisioner,
        board: BoardPublisher,
        zone: ZoneInfo,
        *,
        default_mode: RoomMode = RoomMode.SINGLE_CHANNEL,
        id_factory: Callable[[], str] = _new_event_id,
    ):
        self.repo = repo
        self.channels = channels
        self.rooms = rooms
        self.board = board
        self.zone = zone
        self.default_mode = default_mode
        self.id_factory = id_factory

        self.side_effect_failures = 0
        self._tasks: set[asyncio.Task] = set()

    # ==================== Helpers ====================

    def _parse_when(self, value: DateInput) -> datetime | None:
        if value is None:
            return None
        if isinstance(value, datetime):
            if value.tzinfo is None:
                raise ValidationError("⛔ 日時にタイムゾーンがありません。")
            return value.astimezone(timezone.utc)
        if not value.strip():
            return None
        try:
            return parse_local(value, self.zone)
        except ValueError:
            raise ValidationError(
                "⛔ 日付の形式が不正です。`yyyy-MM-dd HH:mm` で入力してください。"
            ) from None

    def _resolve_guild(self, event_id: str, guild_id: int | None) -> int:
        owner = self.repo.find_guild(event_id)
        if owner is None or (guild_id is not None and owner != guild_id):
            raise NotFoundError("⛔ 選択した予定が見つかりません。")
        return owner

    @staticmethod
    def _find(events: list[Event], event_id: str) -> Event:
        for ev in events:
            if ev.id == event_id:
                return ev
        raise NotFoundError("⛔ 選択した予定が見つかりません。")

    def _next_id(self) -> str:
        event_id = self.id_factory()
        while self.repo.find_guild(event_id) is not None:
            event_id = self.id_factory()
        return event_id

    def _spawn(self, what: str, coro: Awaitable[object]) -> None:
        task = asyncio.create_task(self._best_effort(what, coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _best_effort(self, what: str, coro: Awaitable[object]) -> None:
        try:
            try:
                await coro
            except ChannelServiceError as e:
                raise ExternalSideEffectError(f"{what}: {e}") from e
        except ExternalSideEffectError as e:
            self.side_effect_failures += 1
            logger.warning(f"Side effect failed, {e}")
        except Exception:
            self.side_effect_failures += 1
            logger.exception(f"Side effect crashed: {what}")

    async def _post(self, channel_id: int | None, content: str) -> None:
        if channel_id is None:
            return
        await self.channels.send_message(channel_id, content)

    def refresh_board(self, guild_id: int) -> None:
        """Schedule a background board publish for the guild."""
        self._spawn(f"board refresh for guild {guild_id}", self.board.publish(guild_id))

    async def drain(self) -> None:
        """Wait for background side effects and durable writes to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.repo.flush()

    # ==================== Lifecycle ====================

    async def create(
        self,
        guild_id: int,
        user_id: int,
        fields: EventFields,
        room_mode: RoomMode | None = None,
    ) -> Event:
        mode = room_mode or self.default_mode
        scenario = _clean(fields.scenario_name)
        if scenario is None:
            raise ValidationError("⛔ シナリオ名は必須です。")
        scheduled_at = self._parse_when(fields.scheduled_at)

        config = self.repo.get_config(guild_id)
        if config.notification_channel_id is None:
            raise ConfigurationMissingError(
                "notification_channel_id",
                "⛔ `/config notifychannel` で予定管理チャンネルを先に設定してください。",
            )
        if mode is RoomMode.SINGLE_CHANNEL and config.event_category_id is None:
            raise ConfigurationMissingError(
                "event_category_id",
                "⛔ `/config category` で個室を作るカテゴリを先に設定してください。",
            )

        event_id = self._next_id()
        room_id = await self.rooms.provision(
            guild_id, event_id, scenario, user_id, config.event_category_id, mode
        )

        event = Event(
            id=event_id,
            guild_id=guild_id,
            scenario_name=scenario,
            created_by=user_id,
            private_room_id=room_id,
            scheduled_at=scheduled_at,
            system_name=_clean(fields.system_name),
            gamemaster_name=_clean(fields.gamemaster_name),
            participants={user_id},
        )
        async with self.repo.lock_for(guild_id):
            events = self.repo.load_events(guild_id)
            events.append(event)
            self.repo.replace_events(guild_id, events)

        logger.info(f"Created event {event_id} '{scenario}' in guild {guild_id} by {user_id}")

        self._spawn(
            f"welcome message in room {room_id}",
            self._post(room_id, render_room_welcome(scenario, user_id)),
        )
        self._spawn(
            f"creation announcement for {event_id}",
            self._post(config.notification_channel_id, render_created_announcement(event, self.zone)),
        )
        self.refresh_board(guild_id)
        return event.copy()

    async def edit(
        self, event_id: str, changes: EventChanges, *, guild_id: int | None = None
    ) -> Event:
        updates: dict[str, object] = {}
        if changes.scenario_name is not UNSET:
            scenario = _clean(changes.scenario_name)
            if scenario is None:
                raise ValidationError("⛔ シナリオ名は空にできません。")
            updates["scenario_name"] = scenario
        if changes.scheduled_at is not UNSET:
            updates["scheduled_at"] = self._parse_when(changes.scheduled_at)
        if changes.system_name is not UNSET:
            updates["system_name"] = _clean(changes.system_name)
        if changes.gamemaster_name is not UNSET:
            updates["gamemaster_name"] = _clean(changes.gamemaster_name)

        guild_id = self._resolve_guild(event_id, guild_id)
        async with self.repo.lock_for(guild_id):
            events = self.repo.load_events(guild_id)
            event = self._find(events, event_id)
            for name, value in updates.items():
                setattr(event, name, value)
            self.repo.replace_events(guild_id, events)

        logger.info(f"Edited event {event_id} in guild {guild_id}: {sorted(updates)}")
        self.refresh_board(guild_id)
        return event.copy()

    async def remove(self, event_id: str, *, guild_id: int | None = None) -> Event:
        """Delete the event. Its room is left in place."""
        guild_id = self._resolve_guild(event_id, guild_id)
        async with self.repo.lock_for(guild_id):
            events = self.repo.load_events(guild_id)
            removed = self._find(events, event_id)
            self.repo.replace_events(guild_id, [ev for ev in events if ev.id != event_id])

        logger.info(f"Removed event {event_id} from guild {guild_id}")
        self.refresh_board(guild_id)
        return removed

    # ==================== Participation ====================

    async def join(self, event_id: str, user_id: int, *, guild_id: int | None = None) -> Event:
        guild_id = self._resolve_guild(event_id, guild_id)
        async with self.repo.lock_for(guild_id):
            events = self.repo.load_events(guild_id)
            event = self._find(events, event_id)
            added = user_id not in event.participants
            if added:
                event.participants.add(user_id)
                self.repo.replace_events(guild_id, events)
                # Permission changes apply in the same order as roster changes
                await self.rooms.grant_access(event.private_room_id, user_id)

        if added:
            logger.info(f"User {user_id} joined event {event_id}")
            self._spawn(
                f"join notice in room {event.private_room_id}",
                self._post(event.private_room_id, render_join_notice(user_id)),
            )
            self.refresh_board(guild_id)
        return event.copy()

    async def leave(self, event_id: str, user_id: int, *, guild_id: int | None = None) -> Event:
        guild_id = self._resolve_guild(event_id, guild_id)
        async with self.repo.lock_for(guild_id):
            events = self.repo.load_events(guild_id)
            event = self._find(events, event_id)
            removed = user_id in event.participants
            if removed:
                event.participants.discard(user_id)
                self.repo.replace_events(guild_id, events)
                # The creator keeps the access granted when the room was made
                if user_id != event.created_by:
                    await self.rooms.revoke_access(event.private_room_id, user_id)

        if removed:
            logger.info(f"User {user_id} left event {event_id}")
            self.refresh_board(guild_id)
        return event.copy()

    # ==================== Reads ====================

    def view(self, event_id: str, viewer_id: int, *, guild_id: int | None = None) -> EventView:
        guild_id = self._resolve_guild(event_id, guild_id)
        event = self._find(self.repo.load_events(guild_id), event_id)
        return view_of(event, viewer_id)

    def list_events(self, guild_id: int, viewer_id: int) -> list[EventView]:
        return [view_of(ev, viewer_id) for ev in sort_for_display(self.repo.load_events(guild_id))]

    def get_config(self, guild_id: int) -> ServerConfig:
        return self.repo.get_config(guild_id)

    # ==================== Configuration ====================

    async def configure(
        self,
        guild_id: int,
        *,
        notification_channel_id: int | None = UNSET,  # type: ignore[assignment]
        event_category_id: int | None = UNSET,  # type: ignore[assignment]
        board_channel_id: int | None = UNSET,  # type: ignore[assignment]
    ) -> ServerConfig:
        if event_category_id not in (UNSET, None):
            if not await self.channels.category_exists(guild_id, event_category_id):
                raise ValidationError("⛔ 指定されたチャンネルはこのサーバーのカテゴリではありません。")

        before = self.repo.get_config(guild_id)
        config = self.repo.set_config(
            guild_id,
            notification_channel_id=notification_channel_id,
            event_category_id=event_category_id,
            board_channel_id=board_channel_id,
        )
        logger.info(f"Updated config for guild {guild_id}: {config}")

        if config.board_channel_id != before.board_channel_id:
            if config.board_channel_id is None:
                self._spawn(f"board removal for guild {guild_id}", self.board.remove(guild_id))
            else:
                self.refresh_board(guild_id)
        return config

    async def reset_config(self, guild_id: int) -> ServerConfig:
        """Clear every setting and take the board down."""
        config = self.repo.set_config(
            guild_id,
            notification_channel_id=None,
            event_category_id=None,
            board_channel_id=None,
        )
        logger.info(f"Reset config for guild {guild_id}")
        self._spawn(f"board removal for guild {guild_id}", self.board.remove(guild_id))
        return config
