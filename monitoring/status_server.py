"""
============================================================================
ICU HEALTH MONITOR - STATUS SERVER
============================================================================
Read-only aiohttp server exposing the live cache to the external read API
so listings can show current status without hitting the durable store.

    GET /                        → 200 "OK"  (basic liveness)
    GET /health                  → 200 JSON  { status, uptime, sweep counters }
    GET /targets                 → 200 JSON  every cached target with live status
    GET /targets/{id}/history    → 200 JSON  newest-first check results
                                   404 JSON  unknown target id

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import time
from typing import Any, Dict, Optional

from aiohttp import web

from config.settings import StatusServerSettings
from monitoring.store import TargetStore
from utils.helpers import TimeHelper
from utils.logger import get_logger


logger = get_logger("StatusServer")


class StatusServer:
    """
    Lightweight aiohttp server over a TargetStore.

    Attributes
    ----------
    app : aiohttp.web.Application
    _runner : aiohttp.web.AppRunner
    _site : aiohttp.web.TCPSite
    _start_time : float          — monotonic seconds when the server started
    _request_count : int         — total requests served
    """

    def __init__(
        self,
        store: TargetStore,
        settings: Optional[StatusServerSettings] = None,
        scheduler: Any = None,
        app_name: str = "ICU Health Monitor",
        app_version: str = "1.0.0",
    ):
        self.store = store
        self.settings = settings or StatusServerSettings()
        self.scheduler = scheduler
        self.app_name = app_name
        self.app_version = app_version

        self.app = web.Application()
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._start_time: float = time.monotonic()
        self._request_count: int = 0

        # Register routes
        self.app.router.add_get("/", self._handle_root)
        self.app.router.add_get("/health", self._handle_health)
        self.app.router.add_get("/targets", self._handle_targets)
        self.app.router.add_get("/targets/{target_id}/history", self._handle_history)

    async def start(self) -> None:
        """Bind and start serving."""
        self._start_time = time.monotonic()
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.settings.host, self.settings.port)
        await self._site.start()
        logger.info(f"✓ StatusServer listening on {self.settings.host}:{self.settings.port}")

    async def stop(self) -> None:
        """Gracefully shut down the server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
        logger.info("✓ StatusServer stopped")

    # ------------------------------------------------------------------
    # ROUTE HANDLERS
    # ------------------------------------------------------------------

    async def _handle_root(self, request: web.Request) -> web.Response:
        """GET / — simple liveness probe."""
        self._request_count += 1
        return web.Response(text="OK", status=200)

    async def _handle_health(self, request: web.Request) -> web.Response:
        """GET /health — liveness plus sweep counters."""
        self._request_count += 1
        uptime_seconds = time.monotonic() - self._start_time

        health: Dict[str, Any] = {
            "status": "healthy",
            "name": self.app_name,
            "version": self.app_version,
            "uptime_seconds": round(uptime_seconds, 1),
            "requests_served": self._request_count,
            "timestamp": TimeHelper.get_utc_now().isoformat(),
            "targets": len(self.store),
            "active_targets": len(self.store.list_active()),
        }
        if self.scheduler is not None:
            health["scheduler"] = self.scheduler.get_stats()

        return web.json_response(health, status=200)

    async def _handle_targets(self, request: web.Request) -> web.Response:
        """GET /targets — live status of every cached target."""
        self._request_count += 1
        targets = [target.to_dict() for target in self.store.list_all()]
        return web.json_response({"targets": targets, "count": len(targets)})

    async def _handle_history(self, request: web.Request) -> web.Response:
        """GET /targets/{id}/history — the target's history ring."""
        self._request_count += 1
        target_id = request.match_info["target_id"]

        target = self.store.get(target_id)
        if target is None:
            return web.json_response(
                {"error": f"Target {target_id} not found"},
                status=404,
            )

        history = [result.to_dict() for result in self.store.history(target_id)]
        return web.json_response({
            "target": target.to_dict(),
            "history": history,
        })
