"""Event repository: in-memory mirror in front of a durable store.

Reads are served from the mirror and never block. Mutations update the
mirror synchronously and schedule a background write to the store; the
write persists whatever the mirror holds when it runs, so writes for the
same key coalesce and the last one always carries the newest snapshot.

Read-modify-write sequences on one guild's events must run inside
``lock_for(guild_id)``; ``replace_events`` overwrites the whole collection.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol

from sessionstore.models.event import UNSET, BoardState, Event, ServerConfig

logger = logging.getLogger(__name__)


class EventStore(Protocol):
    """Durable backend used by :class:`EventRepository`."""

    async def fetch_events(self) -> list[Event]: ...

    async def replace_guild_events(self, guild_id: int, events: Sequence[Event]) -> None: ...

    async def fetch_configs(self) -> list[ServerConfig]: ...

    async def upsert_config(self, config: ServerConfig) -> None: ...

    async def fetch_board_states(self) -> list[BoardState]: ...

    async def upsert_board_state(self, state: BoardState) -> None: ...


class EventRepository:
    """Whole-collection event storage with per-guild config and board state."""

    def __init__(self, store: EventStore, *, write_retries: int = 3, retry_delay: float = 1.0):
        self.store = store
        self.write_retries = max(1, write_retries)
        self.retry_delay = retry_delay

        self._events: dict[int, list[Event]] = {}
        self._event_guild: dict[str, int] = {}
        self._configs: dict[int, ServerConfig] = {}
        self._boards: dict[int, BoardState] = {}

        self._locks: dict[int, asyncio.Lock] = {}
        self._write_locks: dict[tuple[str, int], asyncio.Lock] = {}
        self._queued: set[tuple[str, int]] = set()
        self._pending: dict[asyncio.Task, tuple[str, int]] = {}
        self.failed_writes = 0

    # ==================== Lifecycle ====================

    async def restore(self) -> None:
        """Replace the mirror with the store's contents."""
        events = await self.store.fetch_events()
        configs = await self.store.fetch_configs()
        boards = await self.store.fetch_board_states()

        self._events = {}
        self._event_guild = {}
        for ev in events:
            self._events.setdefault(ev.guild_id, []).append(ev)
            self._event_guild[ev.id] = ev.guild_id
        self._configs = {cfg.guild_id: cfg for cfg in configs}
        self._boards = {state.guild_id: state for state in boards}

        logger.info(
            f"Restored {len(events)} event(s) across {len(self._events)} guild(s), "
            f"{len(self._configs)} config(s)"
        )

    async def flush(self) -> None:
        """Wait until every scheduled durable write has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def flush_events(self, guild_id: int) -> None:
        """Wait only for the durable write of one guild's events."""
        key = ("events", guild_id)
        while tasks := [task for task, k in self._pending.items() if k == key]:
            await asyncio.gather(*tasks, return_exceptions=True)

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    # ==================== Events ====================

    def lock_for(self, guild_id: int) -> asyncio.Lock:
        """Mutual-exclusion scope for read-modify-write on one guild."""
        lock = self._locks.get(guild_id)
        if lock is None:
            lock = self._locks[guild_id] = asyncio.Lock()
        return lock

    def load_events(self, guild_id: int) -> list[Event]:
        """Snapshot of a guild's events; callers may mutate the copies freely."""
        return [ev.copy() for ev in self._events.get(guild_id, [])]

    def find_guild(self, event_id: str) -> int | None:
        return self._event_guild.get(event_id)

    def guild_ids(self) -> list[int]:
        return sorted(set(self._events) | set(self._configs))

    def count_events(self) -> int:
        return len(self._event_guild)

    def replace_events(self, guild_id: int, events: Sequence[Event]) -> None:
        """Overwrite a guild's full event set."""
        seen: set[str] = set()
        for ev in events:
            if ev.guild_id != guild_id:
                raise ValueError(f"Event {ev.id} belongs to guild {ev.guild_id}, not {guild_id}")
            if ev.id in seen:
                raise ValueError(f"Duplicate event id {ev.id}")
            owner = self._event_guild.get(ev.id)
            if owner is not None and owner != guild_id:
                raise ValueError(f"Event id {ev.id} already used in guild {owner}")
            seen.add(ev.id)

        for event_id in [eid for eid, gid in self._event_guild.items() if gid == guild_id]:
            del self._event_guild[event_id]
        self._events[guild_id] = [ev.copy() for ev in events]
        for ev in events:
            self._event_guild[ev.id] = guild_id

        self._schedule_write(
            ("events", guild_id),
            lambda: self.store.replace_guild_events(guild_id, self.load_events(guild_id)),
        )

    # ==================== Config ====================

    def get_config(self, guild_id: int) -> ServerConfig:
        cfg = self._configs.get(guild_id)
        if cfg is None:
            return ServerConfig(guild_id=guild_id)
        return ServerConfig(**vars(cfg))

    def set_config(
        self,
        guild_id: int,
        *,
        notification_channel_id: int | None = UNSET,  # type: ignore[assignment]
        event_category_id: int | None = UNSET,  # type: ignore[assignment]
        board_channel_id: int | None = UNSET,  # type: ignore[assignment]
    ) -> ServerConfig:
        """Merge the given fields over the current config.

        Omitted fields are left untouched; an explicit ``None`` clears.
        """
        cfg = self.get_config(guild_id)
        if notification_channel_id is not UNSET:
            cfg.notification_channel_id = notification_channel_id
        if event_category_id is not UNSET:
            cfg.event_category_id = event_category_id
        if board_channel_id is not UNSET:
            cfg.board_channel_id = board_channel_id
        self._configs[guild_id] = cfg

        self._schedule_write(
            ("config", guild_id),
            lambda: self.store.upsert_config(self.get_config(guild_id)),
        )
        return self.get_config(guild_id)

    # ==================== Board State ====================

    def get_board_state(self, guild_id: int) -> BoardState:
        state = self._boards.get(guild_id)
        if state is None:
            return BoardState(guild_id=guild_id)
        return BoardState(**vars(state))

    def set_board_state(
        self,
        guild_id: int,
        *,
        channel_id: int | None = UNSET,  # type: ignore[assignment]
        message_id: int | None = UNSET,  # type: ignore[assignment]
    ) -> BoardState:
        state = self.get_board_state(guild_id)
        if channel_id is not UNSET:
            state.channel_id = channel_id
        if message_id is not UNSET:
            state.message_id = message_id
        self._boards[guild_id] = state

        self._schedule_write(
            ("board", guild_id),
            lambda: self.store.upsert_board_state(self.get_board_state(guild_id)),
        )
        return self.get_board_state(guild_id)

    # ==================== Durable Writes ====================

    def _schedule_write(self, key: tuple[str, int], writer: Callable[[], Awaitable[None]]) -> None:
        # A write still waiting for its lock will pick up this change too.
        if key in self._queued:
            return
        self._queued.add(key)
        task = asyncio.create_task(self._write(key, writer))
        self._pending[task] = key
        task.add_done_callback(lambda t: self._pending.pop(t, None))

    async def _write(self, key: tuple[str, int], writer: Callable[[], Awaitable[None]]) -> None:
        lock = self._write_locks.setdefault(key, asyncio.Lock())
        async with lock:
            self._queued.discard(key)
            for attempt in range(1, self.write_retries + 1):
                try:
                    await writer()
                    return
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    if attempt < self.write_retries:
                        delay = self.retry_delay * attempt
                        logger.warning(
                            f"Persist {key[0]} for guild {key[1]} failed "
                            f"({attempt}/{self.write_retries}): {type(exc).__name__}: {exc}, "
                            f"retrying in {delay:.1f}s"
                        )
                        await asyncio.sleep(delay)
                    else:
                        self.failed_writes += 1
                        logger.exception(
                            f"Persist {key[0]} for guild {key[1]} failed after "
                            f"{self.write_retries} attempts"
                        )
