"""Event panel feature module."""

from discord.ext import commands

from .cog import EventsCog

__all__ = ["EventsCog", "setup"]


async def setup(bot: commands.Bot) -> None:
    """Extension entry point."""
    await bot.add_cog(EventsCog(bot))
