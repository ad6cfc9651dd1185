"""Private per-event rooms: provisioning and member access."""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Collection

from .channels import ChannelService
from .errors import ChannelServiceError, ProvisioningError

logger = logging.getLogger(__name__)

SLUG_MAX_LENGTH = 90
DEFAULT_SLUG = "scenario"

_WHITESPACE = re.compile(r"[\s\u3000]+")
# Hiragana, Katakana, CJK ideographs (incl. extension A), ascii digits/lowercase, - and _
_DISALLOWED = re.compile(r"[^\u3040-\u309f\u30a0-\u30ff\u3400-\u4dbf\u4e00-\u9fff0-9a-z_-]")
_DASHES = re.compile(r"-+")


class RoomMode(enum.Enum):
    SINGLE_CHANNEL = "channel"
    CATEGORY = "category"


def slugify_name(name: str | None) -> str:
    """Channel-safe name derived from a scenario name."""
    slug = (name or DEFAULT_SLUG).lower()
    slug = _WHITESPACE.sub("-", slug)
    slug = _DISALLOWED.sub("-", slug)
    slug = _DASHES.sub("-", slug).strip("-")
    slug = slug[:SLUG_MAX_LENGTH].strip("-")
    return slug or DEFAULT_SLUG


def unique_name(base: str, taken: Collection[str]) -> str:
    """*base*, or *base*-2, *base*-3, ... whichever is not taken."""
    name = base
    i = 2
    while name in taken:
        name = f"{base}-{i}"
        i += 1
    return name


class RoomProvisioner:
    """Creates event rooms and keeps member overwrites in step with participation."""

    def __init__(self, channels: ChannelService):
        self.channels = channels

    async def provision(
        self,
        guild_id: int,
        event_id: str,
        scenario_name: str,
        creator_id: int,
        category_id: int | None,
        mode: RoomMode,
    ) -> int:
        """Create the room and return its channel id.

        Raises ProvisioningError when the category is invalid or the
        platform refuses. A category made for this room is deleted again
        if its channel cannot be created.
        """
        base = slugify_name(scenario_name)
        created_category: int | None = None
        try:
            if mode is RoomMode.CATEGORY:
                taken = await self.channels.sibling_names(guild_id, None)
                parent_id = await self.channels.create_category(guild_id, unique_name(base, taken))
                created_category = parent_id
                name = base
            else:
                if category_id is None or not await self.channels.category_exists(
                    guild_id, category_id
                ):
                    raise ProvisioningError(
                        "カテゴリが無効です。`/config category` で正しいカテゴリを設定してください。"
                    )
                parent_id = category_id
                name = unique_name(base, await self.channels.sibling_names(guild_id, parent_id))

            room_id = await self.channels.create_channel(guild_id, name, parent_id, [creator_id])
        except ChannelServiceError as e:
            logger.warning(f"Room provisioning failed for event {event_id} in guild {guild_id}: {e}")
            if created_category is not None:
                await self._discard_category(created_category)
            raise ProvisioningError(
                "個室チャンネルを作成できませんでした。Botの権限を確認してください。"
            ) from e

        logger.info(f"Provisioned room {room_id} ({mode.value}) for event {event_id}")
        return room_id

    async def _discard_category(self, category_id: int) -> None:
        try:
            await self.channels.delete_channel(category_id)
        except ChannelServiceError as e:
            logger.warning(f"Could not delete orphaned category {category_id}: {e}")

    async def grant_access(self, room_id: int | None, user_id: int) -> bool:
        return await self._set_access(room_id, user_id, allow=True)

    async def revoke_access(self, room_id: int | None, user_id: int) -> bool:
        return await self._set_access(room_id, user_id, allow=False)

    async def _set_access(self, room_id: int | None, user_id: int, *, allow: bool) -> bool:
        if room_id is None:
            return False
        try:
            await self.channels.set_permission(room_id, user_id, allow)
        except ChannelServiceError as e:
            action = "grant" if allow else "revoke"
            logger.warning(f"Failed to {action} room {room_id} access for {user_id}: {e}")
            return False
        return True
