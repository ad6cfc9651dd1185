"""asyncpg pool for the session store.

A DSN on port 6543 is treated as a PgBouncer transaction pooler: no
prepared statement cache and no idle connections kept around.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import asyncpg

from sessionstore.migrations import MigrationRunner
from sessionstore.repositories.postgres import PostgresEventStore

logger = logging.getLogger(__name__)

TRANSACTION_POOLER_PORT = 6543


@dataclass
class PoolConfig:
    min_size: int = 1
    max_size: int = 4
    timeout: float = 10.0
    command_timeout: float = 15.0
    idle_lifetime: float = 300.0
    connect_attempts: int = 3
    backoff: float = 3.0
    ssl: str | None = "require"


class DatabaseManager:
    """Owns the pool from first connect to shutdown."""

    def __init__(self, database_url: str, config: PoolConfig | None = None):
        self.database_url = database_url
        self.config = config or PoolConfig()
        self._pool: asyncpg.Pool | None = None

        parsed = urlparse(database_url)
        self.host = f"{parsed.hostname or 'unknown'}:{parsed.port or 5432}"
        self.behind_pgbouncer = parsed.port == TRANSACTION_POOLER_PORT

    def _pool_kwargs(self) -> dict[str, Any]:
        cfg = self.config
        kwargs: dict[str, Any] = {
            "dsn": self.database_url,
            "min_size": 0 if self.behind_pgbouncer else cfg.min_size,
            "max_size": cfg.max_size,
            "timeout": cfg.timeout,
            "command_timeout": cfg.command_timeout,
            "statement_cache_size": 0 if self.behind_pgbouncer else 100,
            "max_inactive_connection_lifetime": 0 if self.behind_pgbouncer else cfg.idle_lifetime,
        }
        if cfg.ssl:
            kwargs["ssl"] = cfg.ssl
        return kwargs

    async def connect(self) -> None:
        """Create the pool and check it with ``SELECT 1``, backing off between attempts."""
        if self._pool is not None:
            return

        attempts = self.config.connect_attempts
        logger.info(f"Connecting to {self.host} (pgbouncer={self.behind_pgbouncer})")
        for attempt in range(1, attempts + 1):
            pool = None
            try:
                pool = await asyncpg.create_pool(**self._pool_kwargs())
                async with pool.acquire() as conn:
                    await conn.fetchval("SELECT 1")
            except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
                if pool is not None:
                    await pool.close()
                if attempt == attempts:
                    logger.error(f"Could not reach {self.host} after {attempts} attempts: {e!r}")
                    raise
                delay = self.config.backoff * 2 ** (attempt - 1)
                logger.warning(f"Connect attempt {attempt}/{attempts} failed: {e!r}, retry in {delay}s")
                await asyncio.sleep(delay)
                continue

            self._pool = pool
            logger.info(f"Pool ready on {self.host}, max {self.config.max_size} connection(s)")
            return

    async def open_store(self) -> PostgresEventStore:
        """Connect, bring the schema up to date and return the event store."""
        await self.connect()
        await MigrationRunner(self.pool).run_pending()
        return PostgresEventStore(self.pool)

    async def disconnect(self) -> None:
        pool, self._pool = self._pool, None
        if pool is None:
            return
        await pool.close()
        logger.info("Pool closed")

    async def check_health(self) -> bool:
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire(timeout=2.0) as conn:
                await conn.fetchval("SELECT 1")
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError):
            return False
        return True

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("DatabaseManager.connect() has not been called")
        return self._pool
