"""Versioned SQL migrations with a tracking table."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"

# Arbitrary key so two bot processes starting together don't race
_ADVISORY_LOCK_KEY = 0x5E5510


class MigrationRunner:
    """Apply ``versions/NNN_description.sql`` files exactly once each.

    Applied versions are recorded in ``schema_migrations``; each file runs in
    its own transaction together with its tracking row.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool, versions_dir: Path | None = None) -> None:
        self.pool = pool
        self.versions_dir = versions_dir or VERSIONS_DIR

    async def ensure_table(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                    version    TEXT PRIMARY KEY,
                    name       TEXT NOT NULL,
                    applied_at TIMESTAMPTZ DEFAULT NOW()
                )
                """
            )

    async def get_applied(self) -> set[str]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT version FROM {self.TRACKING_TABLE}"  # noqa: S608
            )
            return {row["version"] for row in rows}

    def discover(self) -> list[Path]:
        """SQL files sorted by their ``NNN_`` prefix."""
        return sorted(self.versions_dir.glob("*.sql"))

    async def pending(self) -> list[str]:
        await self.ensure_table()
        applied = await self.get_applied()
        return [p.stem for p in self.discover() if p.stem not in applied]

    async def run_pending(self) -> list[str]:
        """Apply all pending migrations in order; return the new versions."""
        await self.ensure_table()

        async with self.pool.acquire() as conn:
            await conn.execute("SELECT pg_advisory_lock($1)", _ADVISORY_LOCK_KEY)
            try:
                applied = {
                    row["version"]
                    for row in await conn.fetch(
                        f"SELECT version FROM {self.TRACKING_TABLE}"  # noqa: S608
                    )
                }
                newly_applied: list[str] = []
                for sql_path in self.discover():
                    version = sql_path.stem
                    if version in applied:
                        continue
                    await self._apply_one(conn, version, sql_path)
                    newly_applied.append(version)
            finally:
                await conn.execute("SELECT pg_advisory_unlock($1)", _ADVISORY_LOCK_KEY)

        if newly_applied:
            logger.info(
                "Applied %d migration(s): %s", len(newly_applied), ", ".join(newly_applied)
            )
        else:
            logger.info("Database is up to date, no pending migrations")
        return newly_applied

    async def _apply_one(self, conn: asyncpg.Connection, version: str, sql_path: Path) -> None:
        logger.info("Applying migration: %s", version)
        sql = sql_path.read_text(encoding="utf-8")
        async with conn.transaction():
            await conn.execute(sql)
            await conn.execute(
                f"INSERT INTO {self.TRACKING_TABLE} (version, name) VALUES ($1, $2)",
                version,
                sql_path.name,
            )
