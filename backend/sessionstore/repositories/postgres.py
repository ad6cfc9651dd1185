"""Postgres store for events, event_participants, guild_configs and board_states."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence

import asyncpg

from sessionstore.models.event import BoardState, Event, ServerConfig

_EVENT_COLS = (
    "id, guild_id, scheduled_at, scenario_name, system_name, gamemaster_name, "
    "created_by, notified, private_room_id"
)


class PostgresEventStore:
    """Pure SQL operations backing the event repository."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Events ====================

    async def fetch_events(self) -> list[Event]:
        """Load every event of every guild, participants included."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT {_EVENT_COLS} FROM events ORDER BY guild_id, id")
            participant_rows = await conn.fetch(
                "SELECT event_id, user_id FROM event_participants"
            )

        participants: dict[str, set[int]] = defaultdict(set)
        for row in participant_rows:
            participants[row["event_id"]].add(row["user_id"])

        return [Event(**dict(row), participants=participants.get(row["id"], set())) for row in rows]

    async def replace_guild_events(self, guild_id: int, events: Sequence[Event]) -> None:
        """Overwrite one guild's events with *events* in a single transaction."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM events WHERE guild_id = $1", guild_id)
                if not events:
                    return
                await conn.executemany(
                    f"""
                    INSERT INTO events ({_EVENT_COLS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    [
                        (
                            ev.id,
                            guild_id,
                            ev.scheduled_at,
                            ev.scenario_name,
                            ev.system_name,
                            ev.gamemaster_name,
                            ev.created_by,
                            ev.notified,
                            ev.private_room_id,
                        )
                        for ev in events
                    ],
                )
                participant_rows = [
                    (ev.id, user_id) for ev in events for user_id in sorted(ev.participants)
                ]
                if participant_rows:
                    await conn.executemany(
                        """
                        INSERT INTO event_participants (event_id, user_id)
                        VALUES ($1, $2)
                        ON CONFLICT DO NOTHING
                        """,
                        participant_rows,
                    )

    # ==================== Guild Configs ====================

    async def fetch_configs(self) -> list[ServerConfig]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT guild_id, notification_channel_id, event_category_id, board_channel_id
                FROM guild_configs
                """
            )
            return [ServerConfig(**dict(row)) for row in rows]

    async def upsert_config(self, config: ServerConfig) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO guild_configs
                    (guild_id, notification_channel_id, event_category_id, board_channel_id)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (guild_id) DO UPDATE SET
                    notification_channel_id = EXCLUDED.notification_channel_id,
                    event_category_id       = EXCLUDED.event_category_id,
                    board_channel_id        = EXCLUDED.board_channel_id,
                    updated_at = NOW()
                """,
                config.guild_id,
                config.notification_channel_id,
                config.event_category_id,
                config.board_channel_id,
            )

    # ==================== Board States ====================

    async def fetch_board_states(self) -> list[BoardState]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT guild_id, channel_id, message_id FROM board_states")
            return [BoardState(**dict(row)) for row in rows]

    async def upsert_board_state(self, state: BoardState) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO board_states (guild_id, channel_id, message_id)
                VALUES ($1, $2, $3)
                ON CONFLICT (guild_id) DO UPDATE SET
                    channel_id = EXCLUDED.channel_id,
                    message_id = EXCLUDED.message_id,
                    updated_at = NOW()
                """,
                state.guild_id,
                state.channel_id,
                state.message_id,
            )
