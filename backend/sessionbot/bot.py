"""
Session bot
discord.py 2.x client that schedules tabletop sessions
"""

import asyncio
import logging
import sys
from pathlib import Path

# Allow running this file directly
if __name__ == "__main__":
    backend_dir = Path(__file__).parent.parent
    if str(backend_dir) not in sys.path:
        sys.path.insert(0, str(backend_dir))

# Load .env before importing config
from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).parent / ".env", encoding="utf-8")

import discord  # noqa: E402
from discord.ext import commands  # noqa: E402

from sessionbot.core import BotConfig, HealthCheckServer, setup_logging  # noqa: E402
from sessionbot.services import (  # noqa: E402
    BoardPublisher,
    DiscordChannelService,
    EventService,
    NotificationScheduler,
    RoomMode,
    RoomProvisioner,
)
from sessionstore.cache import AsyncTTLCache  # noqa: E402
from sessionstore.database import DatabaseManager  # noqa: E402
from sessionstore.repositories import EventRepository  # noqa: E402

setup_logging()
logger = logging.getLogger(__name__)


class SessionBot(commands.Bot):
    """Session scheduling bot client"""

    def __init__(self, database_url: str):
        intents = discord.Intents.default()
        intents.members = True  # display names for participant lists

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
        )

        self.initial_extensions = [
            "sessionbot.cogs.admin",
            "sessionbot.cogs.events",
        ]

        zone = BotConfig.display_zone()
        self.db = DatabaseManager(database_url)
        self.repo: EventRepository | None = None
        self.channel_service = DiscordChannelService(self)
        self.member_names = AsyncTTLCache(maxsize=1024, ttl=600)
        self.zone = zone
        self.event_service: EventService | None = None
        self.scheduler: NotificationScheduler | None = None
        self.health_server = HealthCheckServer(self, port=BotConfig.HEALTH_PORT)

    def _build_services(self, repo: EventRepository) -> None:
        try:
            mode = RoomMode(BotConfig.DEFAULT_ROOM_MODE.lower())
        except ValueError:
            logger.warning(
                f"Unknown DEFAULT_ROOM_MODE '{BotConfig.DEFAULT_ROOM_MODE}', using 'channel'"
            )
            mode = RoomMode.SINGLE_CHANNEL

        board = BoardPublisher(repo, self.channel_service, self.zone)
        self.event_service = EventService(
            repo,
            self.channel_service,
            RoomProvisioner(self.channel_service),
            board,
            self.zone,
            default_mode=mode,
        )
        self.scheduler = NotificationScheduler(
            repo, self.channel_service, self.zone, grace=BotConfig.notify_grace()
        )

    async def setup_hook(self):
        """Connect storage, restore state, load cogs and sync commands"""
        await self.health_server.start()

        store = await self.db.open_store()
        self.repo = EventRepository(store)
        await self.repo.restore()
        self._build_services(self.repo)

        loaded = []
        failed = []
        for extension in self.initial_extensions:
            try:
                await self.load_extension(extension)
                loaded.append(extension.split(".")[-1])
            except Exception as e:
                logger.exception(f"Failed to load extension {extension}")
                failed.append(f"{extension.split('.')[-1]} ({e})")

        if loaded:
            logger.info(f"Loaded cogs: {', '.join(loaded)}")
        if failed:
            logger.error(f"Failed cogs: {', '.join(failed)}")

        if BotConfig.GUILD_ID:
            # Test guild sync takes effect immediately
            guild = discord.Object(id=int(BotConfig.GUILD_ID))
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            logger.info(f"Synced slash commands to guild {BotConfig.GUILD_ID}")
        else:
            await self.tree.sync()
            logger.info("Synced slash commands globally")

    async def on_ready(self):
        await self.change_presence(
            status=BotConfig.get_status(), activity=BotConfig.get_activity()
        )
        logger.info(f"Bot ready: {self.user} (ID: {self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guild(s) | discord.py {discord.__version__}")

    async def close(self):
        if self.is_closed():
            return
        if self.event_service is not None:
            await self.event_service.drain()
        elif self.repo is not None:
            await self.repo.flush()
        await self.health_server.stop()
        await self.db.disconnect()
        await super().close()


async def main():
    """Bot entry point"""
    if not BotConfig.TOKEN:
        logger.error("DISCORD_BOT_TOKEN is not set")
        return
    if not BotConfig.DATABASE_URL:
        logger.error("DATABASE_URL is not set")
        return

    async with SessionBot(BotConfig.DATABASE_URL) as bot:
        try:
            await bot.start(BotConfig.TOKEN)
        except (KeyboardInterrupt, asyncio.CancelledError):
            if not bot.is_closed():
                await bot.close()


def run() -> None:
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Bot stopped")


if __name__ == "__main__":
    run()
