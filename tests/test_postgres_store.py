"""Tests for the Postgres store and pool manager against mocked asyncpg objects."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import GUILD_ID, U1, U2
from sessionstore.database import DatabaseManager, PoolConfig
from sessionstore.models.event import Event, ServerConfig
from sessionstore.repositories import PostgresEventStore


def make_pool():
    conn = MagicMock()
    conn.execute = AsyncMock()
    conn.executemany = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchval = AsyncMock(return_value=1)

    @asynccontextmanager
    async def transaction():
        yield

    @asynccontextmanager
    async def acquire():
        yield conn

    conn.transaction = transaction
    pool = MagicMock()
    pool.acquire = acquire
    return pool, conn


class TestReplaceGuildEvents:
    """Whole-guild replace in one transaction."""

    @pytest.mark.asyncio
    async def test_deletes_then_inserts(self):
        pool, conn = make_pool()
        store = PostgresEventStore(pool)
        when = datetime(2025, 1, 31, 12, tzinfo=timezone.utc)
        event = Event(
            id="a",
            guild_id=GUILD_ID,
            scenario_name="Tomb",
            created_by=U1,
            scheduled_at=when,
            participants={U2, U1},
        )

        await store.replace_guild_events(GUILD_ID, [event])

        conn.execute.assert_awaited_once_with("DELETE FROM events WHERE guild_id = $1", GUILD_ID)
        event_rows = conn.executemany.await_args_list[0].args[1]
        assert event_rows == [("a", GUILD_ID, when, "Tomb", None, None, U1, False, None)]
        participant_rows = conn.executemany.await_args_list[1].args[1]
        assert participant_rows == [("a", U1), ("a", U2)]

    @pytest.mark.asyncio
    async def test_empty_guild_only_deletes(self):
        pool, conn = make_pool()
        await PostgresEventStore(pool).replace_guild_events(GUILD_ID, [])
        conn.execute.assert_awaited_once()
        conn.executemany.assert_not_awaited()


class TestFetch:
    """Row mapping."""

    @pytest.mark.asyncio
    async def test_fetch_events_attaches_participants(self):
        pool, conn = make_pool()
        conn.fetch.side_effect = [
            [
                {
                    "id": "a",
                    "guild_id": GUILD_ID,
                    "scheduled_at": None,
                    "scenario_name": "Tomb",
                    "system_name": None,
                    "gamemaster_name": None,
                    "created_by": U1,
                    "notified": False,
                    "private_room_id": 5,
                }
            ],
            [{"event_id": "a", "user_id": U1}, {"event_id": "a", "user_id": U2}],
        ]

        events = await PostgresEventStore(pool).fetch_events()
        assert len(events) == 1
        assert events[0].participants == {U1, U2}
        assert events[0].private_room_id == 5

    @pytest.mark.asyncio
    async def test_upsert_config_passes_all_fields(self):
        pool, conn = make_pool()
        await PostgresEventStore(pool).upsert_config(
            ServerConfig(guild_id=GUILD_ID, notification_channel_id=10)
        )
        assert conn.execute.await_args.args[1:] == (GUILD_ID, 10, None, None)


class TestDatabaseManager:
    """Pool settings and lifecycle."""

    def test_transaction_pooler_disables_statement_cache(self):
        db = DatabaseManager("postgresql://u:p@db.example:6543/postgres")
        kwargs = db._pool_kwargs()
        assert db.behind_pgbouncer
        assert kwargs["statement_cache_size"] == 0
        assert kwargs["min_size"] == 0

    def test_session_mode_keeps_defaults(self):
        db = DatabaseManager("postgresql://u:p@db.example:5432/postgres", PoolConfig(ssl=None))
        kwargs = db._pool_kwargs()
        assert db.host == "db.example:5432"
        assert kwargs["statement_cache_size"] == 100
        assert "ssl" not in kwargs

    def test_pool_before_connect_raises(self):
        with pytest.raises(RuntimeError):
            DatabaseManager("postgresql://localhost/db").pool

    @pytest.mark.asyncio
    async def test_health_false_without_pool(self):
        assert await DatabaseManager("postgresql://localhost/db").check_health() is False

    @pytest.mark.asyncio
    async def test_connect_retries_then_succeeds(self, monkeypatch):
        pool, _ = make_pool()
        pool.close = AsyncMock()
        create = AsyncMock(side_effect=[OSError("refused"), pool])
        monkeypatch.setattr("sessionstore.database.asyncpg.create_pool", create)

        db = DatabaseManager("postgresql://localhost/db", PoolConfig(backoff=0))
        await db.connect()

        assert create.await_count == 2
        assert db.pool is pool
        await db.disconnect()
        pool.close.assert_awaited_once()
