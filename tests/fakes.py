"""In-memory stand-ins for the durable store and the chat platform."""

import asyncio
import copy
import itertools
from collections.abc import Sequence

from sessionbot.services.errors import ChannelNotFoundError, ChannelServiceError
from sessionstore.models.event import BoardState, Event, ServerConfig


class InMemoryEventStore:
    """EventStore that keeps snapshots in dicts and can be told to fail."""

    def __init__(self):
        self.events: dict[int, list[Event]] = {}
        self.configs: dict[int, ServerConfig] = {}
        self.boards: dict[int, BoardState] = {}
        self.event_writes = 0
        self.fail_next = 0
        self.write_delay = 0.0

    async def _maybe_fail(self) -> None:
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        if self.fail_next > 0:
            self.fail_next -= 1
            raise ConnectionError("store unavailable")

    async def fetch_events(self) -> list[Event]:
        return [copy.deepcopy(ev) for evs in self.events.values() for ev in evs]

    async def replace_guild_events(self, guild_id: int, events: Sequence[Event]) -> None:
        await self._maybe_fail()
        self.event_writes += 1
        self.events[guild_id] = [copy.deepcopy(ev) for ev in events]

    async def fetch_configs(self) -> list[ServerConfig]:
        return [copy.copy(cfg) for cfg in self.configs.values()]

    async def upsert_config(self, config: ServerConfig) -> None:
        await self._maybe_fail()
        self.configs[config.guild_id] = copy.copy(config)

    async def fetch_board_states(self) -> list[BoardState]:
        return [copy.copy(state) for state in self.boards.values()]

    async def upsert_board_state(self, state: BoardState) -> None:
        await self._maybe_fail()
        self.boards[state.guild_id] = copy.copy(state)


class FakeChannelService:
    """ChannelService that records everything it is asked to do.

    Put an operation name into ``failing`` to make it raise
    ChannelServiceError.
    """

    def __init__(self):
        self._ids = itertools.count(1000)
        self.categories: dict[int, tuple[int, str]] = {}
        self.channels: dict[int, dict] = {}
        self.messages: dict[int, tuple[int, str]] = {}
        self.sent: list[tuple[int, str]] = []
        self.edits: list[tuple[int, int, str]] = []
        self.deleted: list[tuple[int, int]] = []
        self.permissions: list[tuple[int, int, bool]] = []
        self.deleted_channels: list[int] = []
        self.permission_delay = 0.0
        self.failing: set[str] = set()

    def _check(self, op: str) -> None:
        if op in self.failing:
            raise ChannelServiceError(f"{op} refused")

    def add_category(self, guild_id: int, name: str, category_id: int | None = None) -> int:
        category_id = category_id or next(self._ids)
        self.categories[category_id] = (guild_id, name)
        return category_id

    def add_text_channel(self, guild_id: int, name: str, channel_id: int | None = None) -> int:
        channel_id = channel_id or next(self._ids)
        self.channels[channel_id] = {
            "guild_id": guild_id,
            "name": name,
            "parent_id": None,
            "members": set(),
        }
        return channel_id

    def messages_in(self, channel_id: int) -> list[str]:
        return [content for cid, content in self.messages.values() if cid == channel_id]

    async def category_exists(self, guild_id: int, category_id: int) -> bool:
        self._check("category_exists")
        entry = self.categories.get(category_id)
        return entry is not None and entry[0] == guild_id

    async def sibling_names(self, guild_id: int, parent_id: int | None) -> set[str]:
        self._check("sibling_names")
        if parent_id is None:
            return {name for gid, name in self.categories.values() if gid == guild_id}
        return {ch["name"] for ch in self.channels.values() if ch["parent_id"] == parent_id}

    async def create_category(self, guild_id: int, name: str) -> int:
        self._check("create_category")
        return self.add_category(guild_id, name)

    async def create_channel(
        self, guild_id: int, name: str, parent_id: int, member_ids: Sequence[int]
    ) -> int:
        self._check("create_channel")
        if parent_id not in self.categories:
            raise ChannelNotFoundError(f"category {parent_id} not found")
        channel_id = next(self._ids)
        self.channels[channel_id] = {
            "guild_id": guild_id,
            "name": name,
            "parent_id": parent_id,
            "members": set(member_ids),
        }
        return channel_id

    async def delete_channel(self, channel_id: int) -> None:
        self._check("delete_channel")
        if self.categories.pop(channel_id, None) is None and self.channels.pop(channel_id, None) is None:
            raise ChannelNotFoundError(f"channel {channel_id} not found")
        self.deleted_channels.append(channel_id)

    async def set_permission(self, channel_id: int, user_id: int, allow: bool) -> None:
        self._check("set_permission")
        if self.permission_delay and allow:
            await asyncio.sleep(self.permission_delay)
        channel = self.channels.get(channel_id)
        if channel is None:
            raise ChannelNotFoundError(f"channel {channel_id} not found")
        self.permissions.append((channel_id, user_id, allow))
        if allow:
            channel["members"].add(user_id)
        else:
            channel["members"].discard(user_id)

    async def send_message(self, channel_id: int, content: str) -> int:
        self._check("send_message")
        if channel_id not in self.channels:
            raise ChannelNotFoundError(f"channel {channel_id} not found")
        message_id = next(self._ids)
        self.messages[message_id] = (channel_id, content)
        self.sent.append((channel_id, content))
        return message_id

    async def edit_message(self, channel_id: int, message_id: int, content: str) -> None:
        self._check("edit_message")
        if self.messages.get(message_id, (None,))[0] != channel_id:
            raise ChannelNotFoundError(f"message {message_id} not found")
        self.messages[message_id] = (channel_id, content)
        self.edits.append((channel_id, message_id, content))

    async def delete_message(self, channel_id: int, message_id: int) -> None:
        self._check("delete_message")
        if self.messages.get(message_id, (None,))[0] != channel_id:
            raise ChannelNotFoundError(f"message {message_id} not found")
        del self.messages[message_id]
        self.deleted.append((channel_id, message_id))

    async def fetch_message(self, channel_id: int, message_id: int) -> bool:
        self._check("fetch_message")
        return self.messages.get(message_id, (None,))[0] == channel_id


GUILD_ID = 1
OTHER_GUILD_ID = 2
NOTIFY_CHANNEL_ID = 10
CATEGORY_ID = 20
BOARD_CHANNEL_ID = 30
OTHER_BOARD_CHANNEL_ID = 31

U1, U2, U3 = 101, 102, 103
