"""Chat-platform operations used by the event services.

``ChannelService`` is the seam the services depend on; ``DiscordChannelService``
implements it on top of a running discord.py client and translates
discord.py errors into :class:`ChannelServiceError` /
:class:`ChannelNotFoundError`.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator, Sequence
from typing import Protocol

import discord
from discord.ext import commands

from .errors import ChannelNotFoundError, ChannelServiceError

logger = logging.getLogger(__name__)

ROOM_REASON = "Session room"


class ChannelService(Protocol):
    async def category_exists(self, guild_id: int, category_id: int) -> bool: ...

    async def sibling_names(self, guild_id: int, parent_id: int | None) -> set[str]:
        """Names of text channels under *parent_id*, or of categories when ``None``."""
        ...

    async def create_category(self, guild_id: int, name: str) -> int: ...

    async def create_channel(
        self, guild_id: int, name: str, parent_id: int, member_ids: Sequence[int]
    ) -> int:
        """Create a text channel hidden from everyone but the bot and *member_ids*."""
        ...

    async def delete_channel(self, channel_id: int) -> None:
        """Delete a text channel or category."""
        ...

    async def set_permission(self, channel_id: int, user_id: int, allow: bool) -> None: ...

    async def send_message(self, channel_id: int, content: str) -> int: ...

    async def edit_message(self, channel_id: int, message_id: int, content: str) -> None: ...

    async def delete_message(self, channel_id: int, message_id: int) -> None: ...

    async def fetch_message(self, channel_id: int, message_id: int) -> bool: ...


def _member_overwrite() -> discord.PermissionOverwrite:
    return discord.PermissionOverwrite(
        view_channel=True,
        send_messages=True,
        read_message_history=True,
    )


@contextlib.contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except discord.NotFound as e:
        raise ChannelNotFoundError(f"{action}: not found ({e.text or e.status})") from e
    except discord.Forbidden as e:
        raise ChannelServiceError(f"{action}: missing permissions ({e.text or e.status})") from e
    except discord.HTTPException as e:
        raise ChannelServiceError(f"{action}: HTTP {e.status} {e.text}") from e


class DiscordChannelService:
    """ChannelService backed by a discord.py bot."""

    allowed_mentions = discord.AllowedMentions(everyone=False, roles=False, users=True)

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def _guild(self, guild_id: int) -> discord.Guild:
        if guild := self.bot.get_guild(guild_id):
            return guild
        with _translate_errors(f"fetch guild {guild_id}"):
            return await self.bot.fetch_guild(guild_id)

    async def _channel(self, channel_id: int):
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            with _translate_errors(f"fetch channel {channel_id}"):
                channel = await self.bot.fetch_channel(channel_id)
        return channel

    async def _member(self, guild: discord.Guild, user_id: int) -> discord.Member:
        if member := guild.get_member(user_id):
            return member
        with _translate_errors(f"fetch member {user_id}"):
            return await guild.fetch_member(user_id)

    async def _messageable(self, channel_id: int) -> discord.TextChannel | discord.Thread:
        channel = await self._channel(channel_id)
        if not isinstance(channel, (discord.TextChannel, discord.Thread)):
            raise ChannelNotFoundError(f"channel {channel_id} is not a text channel")
        return channel

    async def category_exists(self, guild_id: int, category_id: int) -> bool:
        try:
            channel = await self._channel(category_id)
        except ChannelNotFoundError:
            return False
        return (
            isinstance(channel, discord.CategoryChannel) and channel.guild.id == guild_id
        )

    async def sibling_names(self, guild_id: int, parent_id: int | None) -> set[str]:
        guild = await self._guild(guild_id)
        with _translate_errors(f"list channels of guild {guild_id}"):
            channels = await guild.fetch_channels()
        if parent_id is None:
            return {ch.name for ch in channels if isinstance(ch, discord.CategoryChannel)}
        return {ch.name for ch in channels if ch.category_id == parent_id}

    async def create_category(self, guild_id: int, name: str) -> int:
        guild = await self._guild(guild_id)
        with _translate_errors(f"create category {name!r}"):
            category = await guild.create_category(name, reason=ROOM_REASON)
        return category.id

    async def create_channel(
        self, guild_id: int, name: str, parent_id: int, member_ids: Sequence[int]
    ) -> int:
        guild = await self._guild(guild_id)
        category = guild.get_channel(parent_id) or await self._channel(parent_id)
        if not isinstance(category, discord.CategoryChannel):
            raise ChannelNotFoundError(f"category {parent_id} not found in guild {guild_id}")

        overwrites: dict = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
            guild.me: discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                read_message_history=True,
                manage_channels=True,
            ),
        }
        for user_id in member_ids:
            overwrites[await self._member(guild, user_id)] = _member_overwrite()

        with _translate_errors(f"create channel {name!r}"):
            channel = await guild.create_text_channel(
                name, category=category, overwrites=overwrites, reason=ROOM_REASON
            )
        return channel.id

    async def delete_channel(self, channel_id: int) -> None:
        channel = await self._channel(channel_id)
        with _translate_errors(f"delete channel {channel_id}"):
            await channel.delete(reason=ROOM_REASON)

    async def set_permission(self, channel_id: int, user_id: int, allow: bool) -> None:
        channel = await self._messageable(channel_id)
        if not isinstance(channel, discord.TextChannel):
            raise ChannelServiceError(f"channel {channel_id} has no permission overwrites")
        try:
            target = await self._member(channel.guild, user_id)
        except ChannelNotFoundError:
            if allow:
                raise
            # Member already left the guild; nothing to revoke
            return
        with _translate_errors(f"set permission on {channel_id} for {user_id}"):
            if allow:
                await channel.set_permissions(target, overwrite=_member_overwrite())
            else:
                await channel.set_permissions(target, overwrite=None)

    async def send_message(self, channel_id: int, content: str) -> int:
        channel = await self._messageable(channel_id)
        with _translate_errors(f"send to {channel_id}"):
            message = await channel.send(content, allowed_mentions=self.allowed_mentions)
        return message.id

    async def edit_message(self, channel_id: int, message_id: int, content: str) -> None:
        channel = await self._messageable(channel_id)
        with _translate_errors(f"edit message {message_id}"):
            await channel.get_partial_message(message_id).edit(
                content=content, allowed_mentions=self.allowed_mentions
            )

    async def delete_message(self, channel_id: int, message_id: int) -> None:
        channel = await self._messageable(channel_id)
        with _translate_errors(f"delete message {message_id}"):
            await channel.get_partial_message(message_id).delete()

    async def fetch_message(self, channel_id: int, message_id: int) -> bool:
        try:
            channel = await self._messageable(channel_id)
            with _translate_errors(f"fetch message {message_id}"):
                await channel.fetch_message(message_id)
        except ChannelNotFoundError:
            return False
        return True
