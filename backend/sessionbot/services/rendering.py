"""Message text for boards, announcements and the event panel.

Pure functions: same input, same text. Times are stored in UTC and only
converted to the display zone here.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from sessionstore.models.event import Event

from .visibility import EventView, Visibility

DATE_FORMAT = "%Y-%m-%d %H:%M"
UNSET_LABEL = "未設定"
EMPTY_PLACEHOLDER = "（予定はありません）"
BOARD_HEADER = "📅 **予定一覧**"
BOARD_MAX_EVENTS = 20
MESSAGE_LIMIT = 2000


# ==================== Dates ====================


def parse_local(text: str, zone: ZoneInfo) -> datetime:
    """Parse ``yyyy-MM-dd HH:mm`` in *zone* and return the UTC instant.

    Raises ValueError on malformed input.
    """
    naive = datetime.strptime(text.strip(), DATE_FORMAT)
    return naive.replace(tzinfo=zone).astimezone(timezone.utc)


def format_local(when: datetime | None, zone: ZoneInfo) -> str | None:
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when.astimezone(zone).strftime(DATE_FORMAT)


def zone_label(zone: ZoneInfo) -> str:
    return "JST" if zone.key == "Asia/Tokyo" else zone.key


def _when(when: datetime | None, zone: ZoneInfo, *, with_zone: bool = False) -> str:
    text = format_local(when, zone)
    if text is None:
        return UNSET_LABEL
    return f"{text} ({zone_label(zone)})" if with_zone else text


def _or_unset(value: str | None) -> str:
    return value if value and value.strip() else UNSET_LABEL


# ==================== Ordering ====================


def sort_key(event: Event | EventView) -> tuple:
    scheduled_at = event.scheduled_at
    event_id = event.id if isinstance(event, Event) else event.event_id
    return (
        scheduled_at is None,
        scheduled_at or datetime.min.replace(tzinfo=timezone.utc),
        event.scenario_name,
        event_id,
    )


def sort_for_display(events: Iterable[Event]) -> list[Event]:
    """Dated events first by time, undated last; ties broken by name then id."""
    return sorted(events, key=sort_key)


def gm_label(event: Event | EventView) -> str:
    return event.gamemaster_name or f"<@{event.created_by}>"


def event_lines(event: Event | EventView, zone: ZoneInfo) -> list[str]:
    return [
        f"【日付】{_when(event.scheduled_at, zone, with_zone=True)}",
        f"【シナリオ名】{_or_unset(event.scenario_name)}",
        f"【システム名】{_or_unset(event.system_name)}",
        f"【GM名】{gm_label(event)}",
    ]


# ==================== Board ====================


def _board_line(event: Event, zone: ZoneInfo) -> str:
    return (
        f"• {_when(event.scheduled_at, zone)} / {event.scenario_name} / "
        f"{_or_unset(event.system_name)} / 参加者:{len(event.participants)}人"
    )


def _truncate(text: str, limit: int = MESSAGE_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def render_board(events: Sequence[Event], zone: ZoneInfo) -> str:
    """The guild's summary message; at most BOARD_MAX_EVENTS entries."""
    if not events:
        return f"{BOARD_HEADER}\n{EMPTY_PLACEHOLDER}"

    ordered = sort_for_display(events)
    shown = ordered[:BOARD_MAX_EVENTS]
    lines = [BOARD_HEADER]
    lines.extend(_board_line(ev, zone) for ev in shown)
    rest = len(ordered) - len(shown)

    # Drop entries from the tail until the message fits, counting them as hidden
    while True:
        tail = [f"…ほか {rest} 件"] if rest else []
        text = "\n".join(lines + tail)
        if len(text) <= MESSAGE_LIMIT or len(lines) <= 2:
            return _truncate(text)
        lines.pop()
        rest += 1


# ==================== Announcements ====================


def render_due_notice(event: Event, zone: ZoneInfo) -> str:
    return "\n".join(["⏰ **予定の時間です！**", *event_lines(event, zone)])


def render_created_announcement(event: Event, zone: ZoneInfo) -> str:
    lines = ["🆕 **新しい予定が作成されました**", *event_lines(event, zone)]
    if event.private_room_id:
        lines.append(f"【部屋】<#{event.private_room_id}>")
    lines.append(f"ID:`{event.id}`")
    return "\n".join(lines)


def render_room_welcome(scenario_name: str, creator_id: int) -> str:
    return (
        "🗓️ **シナリオ部屋**\n"
        "このチャンネルは予定作成により自動生成されました。\n"
        f"作成者: <@{creator_id}>\n"
        f"シナリオ名: **{scenario_name}**"
    )


def render_join_notice(user_id: int) -> str:
    return f"🙋 <@{user_id}> さんが参加しました。"


# ==================== Panel ====================


def render_event_list(views: Sequence[EventView], zone: ZoneInfo) -> str:
    """One line per event as the viewer may see it."""
    if not views:
        return EMPTY_PLACEHOLDER
    lines = []
    for view in views:
        if view.visibility is Visibility.FULL:
            info = f" / 参加者:{view.participant_count}人 / 参加済"
        elif view.visibility is Visibility.COUNT_ONLY:
            info = f" / 参加者:{view.participant_count}人 / （作成者）"
        else:
            info = " / 参加者:非公開"
        status = " (通知済)" if view.notified else ""
        lines.append(
            f"• {_when(view.scheduled_at, zone)} / {view.scenario_name} / "
            f"{_or_unset(view.system_name)}{info} | id:`{view.event_id}`{status}"
        )
    return _truncate("\n".join(lines))


def render_event_view(view: EventView, zone: ZoneInfo, names: Sequence[str] = ()) -> str:
    """Participant details for one event; *names* are used only for FULL views."""
    details = "\n".join(event_lines(view, zone))
    footer = f"ID:`{view.event_id}`"
    if view.visibility is Visibility.FULL:
        roster = list(names) or [f"<@{uid}>" for uid in view.participant_ids or ()]
        body = "\n".join(f"- {name}" for name in roster)
        text = f"👥 参加者（{view.participant_count}人）\n{body}\n\n{details}\n{footer}"
    elif view.visibility is Visibility.COUNT_ONLY:
        text = (
            f"👀 参加者数: **{view.participant_count}人**\n"
            f"（参加者の**名前**は、参加登録後に閲覧できます）\n\n{details}\n{footer}"
        )
    else:
        text = f"👀 参加者情報は**参加登録後**に閲覧できます。\n\n{details}\n{footer}"
    return _truncate(text)
