"""Event panel UI components."""

from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

import discord

from sessionbot.services import EventChanges, EventFields, EventView
from sessionbot.services.rendering import format_local

from .constants import (
    DATE_PLACEHOLDER,
    GM_MAX_LENGTH,
    OPTION_TEXT_LIMIT,
    SCENARIO_MAX_LENGTH,
    SELECT_MAX_OPTIONS,
    SYSTEM_MAX_LENGTH,
    VIEW_TIMEOUT,
)

if TYPE_CHECKING:
    from .cog import EventsCog

PickHandler = Callable[[discord.Interaction, str], Awaitable[None]]


def _date_input(default: str | None = None) -> discord.ui.TextInput:
    return discord.ui.TextInput(
        label="日付（yyyy-MM-dd HH:mm）",
        placeholder=DATE_PLACEHOLDER,
        required=False,
        max_length=16,
        default=default,
    )


class AddEventModal(discord.ui.Modal, title="予定を追加"):
    """新規予定フォーム"""

    def __init__(self, cog: "EventsCog"):
        super().__init__(title=f"予定を追加（{cog.zone_label}）")
        self.cog = cog
        self.when = _date_input()
        self.scenario = discord.ui.TextInput(
            label="シナリオ名", required=True, max_length=SCENARIO_MAX_LENGTH
        )
        self.system = discord.ui.TextInput(
            label="システム名", required=False, max_length=SYSTEM_MAX_LENGTH
        )
        self.gamemaster = discord.ui.TextInput(
            label="GM名（空欄なら作成者）", required=False, max_length=GM_MAX_LENGTH
        )
        for item in (self.when, self.scenario, self.system, self.gamemaster):
            self.add_item(item)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        fields = EventFields(
            scenario_name=self.scenario.value,
            scheduled_at=self.when.value,
            system_name=self.system.value,
            gamemaster_name=self.gamemaster.value,
        )
        await self.cog.process_create(interaction, fields)


class EditEventModal(discord.ui.Modal, title="予定を編集"):
    """既存予定の編集フォーム（空欄でクリア、シナリオ名は必須）"""

    def __init__(self, cog: "EventsCog", event: EventView):
        super().__init__(title="予定を編集（空でクリア可）")
        self.cog = cog
        self.event_id = event.event_id
        self.when = _date_input(format_local(event.scheduled_at, cog.zone))
        self.scenario = discord.ui.TextInput(
            label="シナリオ名",
            required=True,
            max_length=SCENARIO_MAX_LENGTH,
            default=event.scenario_name,
        )
        self.system = discord.ui.TextInput(
            label="システム名",
            required=False,
            max_length=SYSTEM_MAX_LENGTH,
            default=event.system_name,
        )
        self.gamemaster = discord.ui.TextInput(
            label="GM名（空欄なら作成者）",
            required=False,
            max_length=GM_MAX_LENGTH,
            default=event.gamemaster_name,
        )
        for item in (self.when, self.scenario, self.system, self.gamemaster):
            self.add_item(item)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        changes = EventChanges(
            scenario_name=self.scenario.value,
            scheduled_at=self.when.value,
            system_name=self.system.value,
            gamemaster_name=self.gamemaster.value,
        )
        await self.cog.process_edit(interaction, self.event_id, changes)


class EventSelect(discord.ui.Select):
    def __init__(self, cog: "EventsCog", events: Sequence[EventView], placeholder: str, on_pick: PickHandler):
        options = []
        for ev in events[:SELECT_MAX_OPTIONS]:
            when = format_local(ev.scheduled_at, cog.zone) or "未設定"
            options.append(
                discord.SelectOption(
                    label=f"{when} {ev.scenario_name}"[:OPTION_TEXT_LIMIT],
                    value=ev.event_id,
                    description=(ev.system_name or "未設定")[:OPTION_TEXT_LIMIT],
                )
            )
        super().__init__(placeholder=placeholder, options=options, min_values=1, max_values=1)
        self._on_pick = on_pick

    async def callback(self, interaction: discord.Interaction) -> None:
        await self._on_pick(interaction, self.values[0])


class EventSelectView(discord.ui.View):
    """予定を一つ選んで操作する"""

    def __init__(self, cog: "EventsCog", events: Sequence[EventView], placeholder: str, on_pick: PickHandler):
        super().__init__(timeout=VIEW_TIMEOUT)
        self.add_item(EventSelect(cog, events, placeholder, on_pick))


class PanelView(discord.ui.View):
    """予定パネル"""

    def __init__(self, cog: "EventsCog"):
        super().__init__(timeout=VIEW_TIMEOUT)
        self.cog = cog

    @discord.ui.button(label="予定を追加", style=discord.ButtonStyle.primary, row=0)
    async def add_btn(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await interaction.response.send_modal(AddEventModal(self.cog))

    @discord.ui.button(label="予定一覧", style=discord.ButtonStyle.secondary, row=0)
    async def list_btn(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self.cog.show_list(interaction)

    @discord.ui.button(label="予定を編集", style=discord.ButtonStyle.success, row=0)
    async def edit_btn(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self.cog.show_edit_select(interaction)

    @discord.ui.button(label="予定を削除", style=discord.ButtonStyle.danger, row=0)
    async def remove_btn(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self.cog.show_remove_select(interaction)

    @discord.ui.button(label="参加する", style=discord.ButtonStyle.primary, row=1)
    async def join_btn(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self.cog.show_join_select(interaction)

    @discord.ui.button(label="参加を取り消す", style=discord.ButtonStyle.secondary, row=1)
    async def leave_btn(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self.cog.show_leave_select(interaction)

    @discord.ui.button(label="参加者を見る", style=discord.ButtonStyle.secondary, row=1)
    async def members_btn(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self.cog.show_view_select(interaction)
