"""
Server configuration cog
Notification channel, room category and board channel per guild
"""

import logging

import discord
from discord import app_commands
from discord.ext import commands

from sessionbot.services import EventService, EventServiceError

logger = logging.getLogger(__name__)


def _mention(channel_id: int | None) -> str:
    return f"<#{channel_id}>" if channel_id else "未設定"


class Admin(commands.Cog):
    """サーバー設定コマンド"""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @property
    def service(self) -> EventService | None:
        return getattr(self.bot, "event_service", None)

    config_group = app_commands.Group(
        name="config",
        description="予定機能のサーバー設定",
        guild_only=True,
        default_permissions=discord.Permissions(manage_guild=True),
    )

    async def _configure(self, interaction: discord.Interaction, label: str, **fields) -> None:
        if self.service is None or interaction.guild is None:
            await interaction.response.send_message("⏳ 起動処理中です。", ephemeral=True)
            return
        try:
            await self.service.configure(interaction.guild.id, **fields)
        except EventServiceError as e:
            await interaction.response.send_message(str(e), ephemeral=True)
            return
        except Exception as e:
            logger.exception(f"Config update failed in guild {interaction.guild.id}: {e}")
            await interaction.response.send_message("⚠️ 設定の保存に失敗しました。", ephemeral=True)
            return

        value = next(iter(fields.values()))
        logger.info(f"{label} set to {value} in guild {interaction.guild.id} by {interaction.user}")
        await interaction.response.send_message(
            f"✅ {label}を {_mention(value)} に設定しました。", ephemeral=True
        )

    @config_group.command(name="notifychannel", description="予定の告知・時間通知を送るチャンネル")
    @app_commands.describe(channel="通知先チャンネル")
    async def set_notify_channel(
        self, interaction: discord.Interaction, channel: discord.TextChannel
    ) -> None:
        await self._configure(interaction, "予定管理チャンネル", notification_channel_id=channel.id)

    @config_group.command(name="category", description="シナリオ用プライベートchを作成するカテゴリ")
    @app_commands.describe(category="個室を作るカテゴリ")
    async def set_category(
        self, interaction: discord.Interaction, category: discord.CategoryChannel
    ) -> None:
        await self._configure(interaction, "個室カテゴリ", event_category_id=category.id)

    @config_group.command(name="boardchannel", description="予定一覧の掲示板チャンネル")
    @app_commands.describe(channel="掲示板を置くチャンネル")
    async def set_board_channel(
        self, interaction: discord.Interaction, channel: discord.TextChannel
    ) -> None:
        await self._configure(interaction, "掲示板チャンネル", board_channel_id=channel.id)

    @config_group.command(name="show", description="現在の設定を表示")
    async def show_config(self, interaction: discord.Interaction) -> None:
        if self.service is None or interaction.guild is None:
            await interaction.response.send_message("⏳ 起動処理中です。", ephemeral=True)
            return
        config = self.service.get_config(interaction.guild.id)
        await interaction.response.send_message(
            "\n".join(
                [
                    "⚙️ **現在の設定**",
                    f"予定管理チャンネル: {_mention(config.notification_channel_id)}",
                    f"個室カテゴリ: {_mention(config.event_category_id)}",
                    f"掲示板チャンネル: {_mention(config.board_channel_id)}",
                ]
            ),
            ephemeral=True,
        )

    @config_group.command(name="reset", description="設定をすべてリセット")
    async def reset_config(self, interaction: discord.Interaction) -> None:
        if self.service is None or interaction.guild is None:
            await interaction.response.send_message("⏳ 起動処理中です。", ephemeral=True)
            return
        await self.service.reset_config(interaction.guild.id)
        logger.info(f"Config reset in guild {interaction.guild.id} by {interaction.user}")
        await interaction.response.send_message("♻️ 設定をリセットしました。", ephemeral=True)


async def setup(bot: commands.Bot):
    await bot.add_cog(Admin(bot))
