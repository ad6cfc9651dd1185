"""aiohttp side server: liveness for the host, counters for humans"""

import asyncio
import logging
import time
from typing import Any

from aiohttp import web

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 300


class HealthCheckServer:
    """Serves /health, /status and /ping next to the gateway connection"""

    def __init__(self, bot: Any = None, host: str = "0.0.0.0", port: int = 8080) -> None:
        self.bot = bot
        self.host = host
        self.port = port
        self.started_at = time.monotonic()
        self.app = web.Application()
        self.app.add_routes(
            [
                web.get("/", self.handle_health),
                web.get("/health", self.handle_health),
                web.get("/status", self.handle_status),
                web.get("/ping", self.handle_ping),
            ]
        )
        self.runner: web.AppRunner | None = None
        self._heartbeat_task: asyncio.Task | None = None

    @property
    def uptime(self) -> int:
        return int(time.monotonic() - self.started_at)

    def _ready(self) -> bool:
        return self.bot is not None and self.bot.is_ready()

    async def snapshot(self) -> dict[str, Any]:
        """Counters from the repository and scheduler, whichever exist yet"""
        repo = getattr(self.bot, "repo", None)
        scheduler = getattr(self.bot, "scheduler", None)
        db = getattr(self.bot, "db", None)
        last_pass = scheduler.last_pass_at if scheduler else None
        ready = self._ready()

        return {
            "ready": ready,
            "uptime_seconds": self.uptime,
            "guilds": len(self.bot.guilds) if ready else 0,
            "database": await db.check_health() if db else False,
            "events_tracked": repo.count_events() if repo else 0,
            "pending_writes": repo.pending_writes if repo else 0,
            "failed_writes": repo.failed_writes if repo else 0,
            "last_scheduler_pass": last_pass.isoformat() if last_pass else None,
            "notifications_sent": scheduler.sent_total if scheduler else 0,
        }

    async def handle_health(self, request: web.Request) -> web.Response:
        # 200 even while connecting, so the host does not restart a slow login
        ready = self._ready()
        return web.json_response({"status": "healthy" if ready else "starting", "ready": ready})

    async def handle_status(self, request: web.Request) -> web.Response:
        return web.json_response(await self.snapshot())

    async def handle_ping(self, request: web.Request) -> web.Response:
        return web.Response(text="pong")

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(HEARTBEAT_INTERVAL)
            repo = getattr(self.bot, "repo", None)
            logger.info(
                f"Heartbeat: uptime={self.uptime}s ready={self._ready()} "
                f"events={repo.count_events() if repo else 0}"
            )

    async def start(self) -> None:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        await web.TCPSite(self.runner, self.host, self.port).start()
        self._heartbeat_task = asyncio.create_task(self._heartbeat())
        logger.info(f"Health server listening on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("Health server stopped")
