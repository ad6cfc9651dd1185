"""Session bot configuration"""

import logging
import os
from datetime import timedelta
from zoneinfo import ZoneInfo

import discord

logger = logging.getLogger(__name__)


class BotConfig:
    TOKEN: str = os.getenv("DISCORD_BOT_TOKEN", "")
    GUILD_ID: str = os.getenv("DISCORD_GUILD_ID", "")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    NOTIFY_INTERVAL_SECONDS: float = float(os.getenv("NOTIFY_INTERVAL_SECONDS", "30"))
    NOTIFY_GRACE_SECONDS: float = float(os.getenv("NOTIFY_GRACE_SECONDS", "60"))
    DISPLAY_TIMEZONE: str = os.getenv("DISPLAY_TIMEZONE", "Asia/Tokyo")
    DEFAULT_ROOM_MODE: str = os.getenv("DEFAULT_ROOM_MODE", "channel")

    HEALTH_PORT: int = int(os.getenv("HEALTH_PORT", os.getenv("PORT", "8080")))

    STATUS: str = os.getenv("DISCORD_STATUS", "")
    ACTIVITY_TYPE: str = os.getenv("DISCORD_ACTIVITY_TYPE", "")
    ACTIVITY_NAME: str = os.getenv("DISCORD_ACTIVITY_NAME", "")

    @classmethod
    def display_zone(cls) -> ZoneInfo:
        return ZoneInfo(cls.DISPLAY_TIMEZONE)

    @classmethod
    def notify_grace(cls) -> timedelta:
        return timedelta(seconds=cls.NOTIFY_GRACE_SECONDS)

    @classmethod
    def get_status(cls) -> discord.Status:
        status_map = {
            "online": discord.Status.online,
            "idle": discord.Status.idle,
            "dnd": discord.Status.dnd,
            "invisible": discord.Status.invisible,
        }
        return status_map.get(cls.STATUS.lower(), discord.Status.online)

    @classmethod
    def get_activity(cls) -> discord.Activity | None:
        """Bot activity from DISCORD_ACTIVITY_TYPE / DISCORD_ACTIVITY_NAME.

        Supports: playing, listening, watching, competing
        """
        if not cls.ACTIVITY_NAME:
            return None

        activity_map = {
            "playing": discord.ActivityType.playing,
            "listening": discord.ActivityType.listening,
            "watching": discord.ActivityType.watching,
            "competing": discord.ActivityType.competing,
        }
        activity_type = activity_map.get(cls.ACTIVITY_TYPE.lower())
        if activity_type is None:
            if cls.ACTIVITY_TYPE:
                logger.warning(
                    f"Unknown DISCORD_ACTIVITY_TYPE '{cls.ACTIVITY_TYPE}', using 'playing'"
                )
            activity_type = discord.ActivityType.playing
        return discord.Activity(type=activity_type, name=cls.ACTIVITY_NAME)
