"""Event panel cog and notification loop."""

import logging

import discord
from discord import app_commands
from discord.ext import commands, tasks

from sessionbot.core import BotConfig
from sessionbot.services import (
    EventChanges,
    EventFields,
    EventService,
    EventServiceError,
    EventView,
    NotificationScheduler,
    Visibility,
    visibility_for,
)
from sessionbot.services.rendering import (
    event_lines,
    render_event_list,
    render_event_view,
    zone_label,
)

from .constants import (
    GENERIC_FAILURE,
    GUILD_ONLY,
    NO_EDITABLE,
    NO_EVENTS,
    NO_JOINABLE,
    NO_JOINED,
    NO_REMOVABLE,
    NOT_READY,
    PANEL_MESSAGE,
)
from .views import EditEventModal, EventSelectView, PanelView

logger = logging.getLogger(__name__)


class EventsCog(commands.Cog):
    """予定パネル Cog"""

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.zone = bot.zone  # type: ignore[attr-defined]

    @property
    def service(self) -> EventService | None:
        return getattr(self.bot, "event_service", None)

    @property
    def scheduler(self) -> NotificationScheduler | None:
        return getattr(self.bot, "scheduler", None)

    @property
    def zone_label(self) -> str:
        return zone_label(self.zone)

    async def cog_load(self) -> None:
        self.notify_task.change_interval(seconds=BotConfig.NOTIFY_INTERVAL_SECONDS)
        self.notify_task.start()

    async def cog_unload(self) -> None:
        self.notify_task.cancel()

    # ==================== Helpers ====================

    @staticmethod
    async def _reply(interaction: discord.Interaction, content: str, **kwargs) -> None:
        if interaction.response.is_done():
            await interaction.followup.send(content, ephemeral=True, **kwargs)
        else:
            await interaction.response.send_message(content, ephemeral=True, **kwargs)

    async def _guard(self, interaction: discord.Interaction) -> EventService | None:
        if interaction.guild is None:
            await self._reply(interaction, GUILD_ONLY)
            return None
        if self.service is None:
            await self._reply(interaction, NOT_READY)
            return None
        return self.service

    async def _report(self, interaction: discord.Interaction, error: Exception, action: str) -> None:
        if isinstance(error, EventServiceError):
            await self._reply(interaction, str(error))
            return
        logger.exception(f"Event {action} failed for {interaction.user.id}: {error}")
        await self._reply(interaction, GENERIC_FAILURE)

    async def _display_name(self, guild: discord.Guild, user_id: int) -> str:
        async def load() -> str:
            if member := guild.get_member(user_id):
                return member.display_name
            try:
                member = await guild.fetch_member(user_id)
            except discord.HTTPException:
                return f"<@{user_id}>"
            return member.display_name

        return await self.bot.member_names.get_or_load(f"{guild.id}:{user_id}", load)  # type: ignore[attr-defined]

    def _summary(self, event, header: str) -> str:
        return "\n".join([header, *event_lines(event, self.zone), f"ID:`{event.id}`"])

    # ==================== Background Tasks ====================

    @tasks.loop(seconds=30)
    async def notify_task(self) -> None:
        scheduler = self.scheduler
        if scheduler is None:
            return
        try:
            await scheduler.run_pass()
        except Exception as e:
            logger.exception(f"Error in notification pass: {e}")

    @notify_task.before_loop
    async def _wait_ready(self) -> None:
        await self.bot.wait_until_ready()

    # ==================== Commands ====================

    event_group = app_commands.Group(
        name="event", description="予定の追加・編集・参加", guild_only=True
    )

    @event_group.command(name="ui", description="予定パネルを開きます")
    async def event_ui(self, interaction: discord.Interaction) -> None:
        if await self._guard(interaction) is None:
            return
        await interaction.response.send_message(
            PANEL_MESSAGE, view=PanelView(self), ephemeral=True
        )

    # ==================== Public Methods (for Views) ====================

    async def show_list(self, interaction: discord.Interaction) -> None:
        service = await self._guard(interaction)
        if service is None:
            return
        views = service.list_events(interaction.guild.id, interaction.user.id)
        await self._reply(interaction, render_event_list(views[:20], self.zone))

    async def _show_select(
        self,
        interaction: discord.Interaction,
        events: list[EventView],
        empty: str,
        prompt: str,
        placeholder: str,
        on_pick,
    ) -> None:
        if not events:
            await self._reply(interaction, empty)
            return
        view = EventSelectView(self, events, placeholder, on_pick)
        await self._reply(interaction, prompt, view=view)

    async def show_edit_select(self, interaction: discord.Interaction) -> None:
        service = await self._guard(interaction)
        if service is None:
            return
        await self._show_select(
            interaction,
            service.list_events(interaction.guild.id, interaction.user.id),
            NO_EDITABLE,
            "✏️ 編集対象を選んでください",
            "編集する予定を選択",
            self.open_edit_modal,
        )

    async def show_remove_select(self, interaction: discord.Interaction) -> None:
        service = await self._guard(interaction)
        if service is None:
            return
        await self._show_select(
            interaction,
            service.list_events(interaction.guild.id, interaction.user.id),
            NO_REMOVABLE,
            "🗑️ 削除対象を選んでください",
            "削除する予定を選択",
            self.process_remove,
        )

    async def show_join_select(self, interaction: discord.Interaction) -> None:
        service = await self._guard(interaction)
        if service is None:
            return
        await self._show_select(
            interaction,
            service.list_events(interaction.guild.id, interaction.user.id),
            NO_JOINABLE,
            "🙋 参加する予定を選んでください",
            "参加する予定を選択",
            self.process_join,
        )

    async def show_leave_select(self, interaction: discord.Interaction) -> None:
        service = await self._guard(interaction)
        if service is None:
            return
        joined = [
            ev for ev in service.list_events(interaction.guild.id, interaction.user.id) if ev.joined
        ]
        await self._show_select(
            interaction,
            joined,
            NO_JOINED,
            "↩️ 参加を取り消す予定を選んでください",
            "参加を取り消す予定を選択",
            self.process_leave,
        )

    async def show_view_select(self, interaction: discord.Interaction) -> None:
        service = await self._guard(interaction)
        if service is None:
            return
        await self._show_select(
            interaction,
            service.list_events(interaction.guild.id, interaction.user.id),
            NO_EVENTS,
            "👀 参加者を確認する予定を選んでください"
            "（未参加者は人数・名前ともに非公開／作成者は人数のみ常時閲覧可）",
            "参加者を確認する予定を選択",
            self.process_view,
        )

    async def process_create(self, interaction: discord.Interaction, fields: EventFields) -> None:
        service = await self._guard(interaction)
        if service is None:
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            event = await service.create(interaction.guild.id, interaction.user.id, fields)
        except Exception as e:
            await self._report(interaction, e, "create")
            return
        content = self._summary(event, "✅ **予定を作成しました**")
        content += f"\n【部屋】<#{event.private_room_id}>"
        await self._reply(interaction, content)

    async def open_edit_modal(self, interaction: discord.Interaction, event_id: str) -> None:
        service = await self._guard(interaction)
        if service is None:
            return
        try:
            event = service.view(event_id, interaction.user.id, guild_id=interaction.guild.id)
        except Exception as e:
            await self._report(interaction, e, "edit")
            return
        await interaction.response.send_modal(EditEventModal(self, event))

    async def process_edit(
        self, interaction: discord.Interaction, event_id: str, changes: EventChanges
    ) -> None:
        service = await self._guard(interaction)
        if service is None:
            return
        try:
            event = await service.edit(event_id, changes, guild_id=interaction.guild.id)
        except Exception as e:
            await self._report(interaction, e, "edit")
            return
        await self._reply(interaction, self._summary(event, "✏️ **予定を更新しました**"))

    async def process_remove(self, interaction: discord.Interaction, event_id: str) -> None:
        service = await self._guard(interaction)
        if service is None:
            return
        try:
            event = await service.remove(event_id, guild_id=interaction.guild.id)
        except Exception as e:
            await self._report(interaction, e, "remove")
            return
        await self._reply(interaction, self._summary(event, "🗑️ 削除しました："))

    async def process_join(self, interaction: discord.Interaction, event_id: str) -> None:
        service = await self._guard(interaction)
        if service is None:
            return
        await interaction.response.defer(ephemeral=True)
        try:
            event = await service.join(event_id, interaction.user.id, guild_id=interaction.guild.id)
        except Exception as e:
            await self._report(interaction, e, "join")
            return
        content = self._summary(event, "🙋 参加を登録しました。")
        content += f"\n現在の参加者数: **{len(event.participants)}人**"
        await self._reply(interaction, content)

    async def process_leave(self, interaction: discord.Interaction, event_id: str) -> None:
        service = await self._guard(interaction)
        if service is None:
            return
        await interaction.response.defer(ephemeral=True)
        try:
            event = await service.leave(event_id, interaction.user.id, guild_id=interaction.guild.id)
        except Exception as e:
            await self._report(interaction, e, "leave")
            return
        content = self._summary(event, "↩️ 参加を取り消しました。")
        if visibility_for(event, interaction.user.id) is not Visibility.NONE:
            content += f"\n現在の参加者数: **{len(event.participants)}人**"
        await self._reply(interaction, content)

    async def process_view(self, interaction: discord.Interaction, event_id: str) -> None:
        service = await self._guard(interaction)
        if service is None:
            return
        await interaction.response.defer(ephemeral=True)
        try:
            view = service.view(event_id, interaction.user.id, guild_id=interaction.guild.id)
        except Exception as e:
            await self._report(interaction, e, "view")
            return
        names = []
        if view.participant_ids:
            names = [await self._display_name(interaction.guild, uid) for uid in view.participant_ids]
        await self._reply(interaction, render_event_view(view, self.zone, names))
