"""Keeps one live summary message per guild."""

from __future__ import annotations

import asyncio
import logging
from zoneinfo import ZoneInfo

from sessionstore.repositories import EventRepository

from .channels import ChannelService
from .errors import ChannelNotFoundError, ChannelServiceError
from .rendering import render_board

logger = logging.getLogger(__name__)


class BoardPublisher:
    """Edit the board in place, or replace it when it moved or vanished."""

    def __init__(self, repo: EventRepository, channels: ChannelService, zone: ZoneInfo):
        self.repo = repo
        self.channels = channels
        self.zone = zone
        self._locks: dict[int, asyncio.Lock] = {}

    def _lock(self, guild_id: int) -> asyncio.Lock:
        return self._locks.setdefault(guild_id, asyncio.Lock())

    async def publish(self, guild_id: int) -> int | None:
        """Bring the guild's board up to date and return its message id.

        Returns None when no board channel is configured. Raises
        ChannelServiceError when the new message cannot be sent.
        """
        async with self._lock(guild_id):
            target = self.repo.get_config(guild_id).board_channel_id
            if target is None:
                return None

            content = render_board(self.repo.load_events(guild_id), self.zone)
            state = self.repo.get_board_state(guild_id)

            if state.message_id is not None and state.channel_id == target:
                try:
                    await self.channels.edit_message(target, state.message_id, content)
                    return state.message_id
                except ChannelNotFoundError:
                    logger.info(f"Board message {state.message_id} in guild {guild_id} is gone, reposting")
                except ChannelServiceError as e:
                    logger.warning(f"Board edit failed in guild {guild_id}, reposting: {e}")

            message_id = await self.channels.send_message(target, content)

            if state.message_id is not None and (state.channel_id, state.message_id) != (target, message_id):
                await self._delete_quietly(guild_id, state.channel_id, state.message_id)

            self.repo.set_board_state(guild_id, channel_id=target, message_id=message_id)
            logger.info(f"Board for guild {guild_id} posted as {message_id} in {target}")
            return message_id

    async def remove(self, guild_id: int) -> None:
        """Delete the live board message (best effort) and forget it."""
        async with self._lock(guild_id):
            state = self.repo.get_board_state(guild_id)
            if state.message_id is None:
                return
            await self._delete_quietly(guild_id, state.channel_id, state.message_id)
            self.repo.set_board_state(guild_id, channel_id=None, message_id=None)

    async def _delete_quietly(self, guild_id: int, channel_id: int | None, message_id: int) -> None:
        if channel_id is None:
            return
        try:
            await self.channels.delete_message(channel_id, message_id)
        except ChannelNotFoundError:
            pass
        except ChannelServiceError as e:
            logger.warning(f"Could not delete old board {message_id} in guild {guild_id}: {e}")
