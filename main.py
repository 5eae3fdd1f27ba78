"""
============================================================================
ICU HEALTH MONITOR - MAIN APPLICATION
============================================================================
Wires the health check engine to its collaborators and runs it until a
shutdown signal arrives.

Startup Order
-------------
1.  Load settings & configure logging
2.  Initialize DatabaseManager (create tables if needed)
3.  Create ChangeFeed, TargetStore, MonitoringRepository
4.  Create ProbeExecutor, NotifierDispatch, AlertDispatcher
5.  Start MonitorScheduler (loads active targets — fatal on failure)
6.  Start StatusServer (aiohttp, non-blocking)

Shutdown Order (reverse)
-------------------------
On SIGINT or SIGTERM:
    stop status server → stop scheduler (and store) → close notifier
    client → close probe clients → close DB → exit

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
import signal
import sys
from typing import Optional

from config.settings import LogLevel, Settings, get_settings
from database.manager import DatabaseManager, MonitoringRepository
from exceptions.base import HealthMonitorException
from monitoring.alerts import AlertDispatcher
from monitoring.monitor import ProbeExecutor
from monitoring.notifiers import NotifierDispatch
from monitoring.scheduler import MonitorScheduler
from monitoring.status_server import StatusServer
from monitoring.store import ChangeFeed, TargetStore
from utils.logger import get_logger, setup_logging


logger = get_logger("Main")


# ============================================================================
# APPLICATION CLASS
# ============================================================================

class HealthMonitorApplication:
    """
    Top-level application orchestrator.

    Owns every subsystem and is the single place that knows the startup /
    shutdown order.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

        # --- subsystems (populated during startup) ---
        self.db_manager: Optional[DatabaseManager] = None
        self.repository: Optional[MonitoringRepository] = None
        self.feed: Optional[ChangeFeed] = None
        self.store: Optional[TargetStore] = None
        self.probe: Optional[ProbeExecutor] = None
        self.notifier: Optional[NotifierDispatch] = None
        self.scheduler: Optional[MonitorScheduler] = None
        self.status_server: Optional[StatusServer] = None

        # --- lifecycle ---
        self._stop_event = asyncio.Event()
        self._is_running = False
        self._shut_down = False

    # ------------------------------------------------------------------
    # BANNER
    # ------------------------------------------------------------------

    def _log_banner(self) -> None:
        hc = self.settings.healthcheck
        sc = self.settings.scheduler
        logger.info("=" * 74)
        logger.info(f"  {self.settings.app_name} v{self.settings.app_version}")
        logger.info(f"  Environment : {self.settings.environment.value}")
        logger.info(f"  Interval    : {sc.interval_ms}ms (first sweep after {sc.startup_delay_ms}ms)")
        logger.info(f"  Timeout     : {hc.timeout_ms}ms, methods={hc.method_order}, ipv4_first={hc.use_ipv4_first}")
        logger.info(f"  Accepting   : {hc.allowed_status_codes}")
        logger.info("=" * 74)

    # ==================================================================
    # STARTUP
    # ==================================================================

    async def startup(self) -> bool:
        """
        Execute the complete startup sequence.
        Returns False (and logs errors) if any critical phase fails.
        """
        self._log_banner()

        try:
            # Phase 1 — database
            logger.info("── Phase 1: Database ─────────────────────────────")
            self.db_manager = DatabaseManager(self.settings.database)
            await self.db_manager.initialize()

            # Phase 2 — store and repository
            logger.info("── Phase 2: Target store ─────────────────────────")
            self.feed = ChangeFeed()
            self.store = TargetStore(
                history_size=self.settings.scheduler.history_size,
                feed=self.feed,
                resync_delay=self.settings.scheduler.resync_delay_seconds,
            )
            self.repository = MonitoringRepository(self.db_manager, feed=self.feed)

            # Phase 3 — probe and notifications
            logger.info("── Phase 3: Probe & notifications ────────────────")
            self.probe = ProbeExecutor(self.settings.healthcheck)
            self.notifier = NotifierDispatch(self.settings.notifications)
            alerts = AlertDispatcher(self.repository, self.notifier)

            # Phase 4 — scheduler (fails loudly without an initial target list)
            logger.info("── Phase 4: Scheduler ────────────────────────────")
            self.scheduler = MonitorScheduler(
                store=self.store,
                probe=self.probe,
                source=self.repository,
                alerts=alerts,
                settings=self.settings.scheduler,
                max_concurrent_probes=self.settings.healthcheck.max_concurrent_probes,
            )
            await self.scheduler.start()

            # Phase 5 — status server
            if self.settings.status_server.enabled:
                logger.info("── Phase 5: Status server ────────────────────────")
                self.status_server = StatusServer(
                    self.store,
                    settings=self.settings.status_server,
                    scheduler=self.scheduler,
                    app_name=self.settings.app_name,
                    app_version=self.settings.app_version,
                )
                await self.status_server.start()

        except HealthMonitorException as e:
            logger.error(f"  ✗ Startup failed — {e.log_format()}")
            return False
        except OSError as e:
            logger.error(f"  ✗ Startup failed — {e}")
            return False
        except Exception:
            logger.exception("  ✗ Startup failed with an unexpected error")
            return False

        self._is_running = True
        logger.info("  ✓ ALL SYSTEMS OPERATIONAL")
        return True

    # ==================================================================
    # SHUTDOWN
    # ==================================================================

    async def shutdown(self) -> None:
        """
        Graceful shutdown in reverse order.
        Each step is wrapped in try/except so a failure in one subsystem
        doesn't prevent the others from cleaning up.
        """
        if self._shut_down:
            return
        self._shut_down = True
        self._is_running = False
        logger.info("  SHUTTING DOWN …")

        steps = (
            ("StatusServer", self.status_server.stop if self.status_server else None),
            ("MonitorScheduler", self.scheduler.stop if self.scheduler else None),
            ("NotifierDispatch", self.notifier.close if self.notifier else None),
            ("ProbeExecutor", self.probe.close if self.probe else None),
            ("Database", self.db_manager.close if self.db_manager else None),
        )
        for name, step in steps:
            if step is None:
                continue
            try:
                await step()
                logger.info(f"  ✓ {name} stopped")
            except Exception as e:
                logger.error(f"  ✗ {name} stop error: {e}")

        logger.info("  ✓ SHUTDOWN COMPLETE")

    # ==================================================================
    # RUN
    # ==================================================================

    def request_stop(self) -> None:
        logger.info("  ⚡ Signal received — initiating graceful shutdown…")
        self._stop_event.set()

    async def run(self) -> None:
        """Block until a stop is requested."""
        await self._stop_event.wait()


# ============================================================================
# SIGNAL HANDLER SETUP
# ============================================================================

def _install_signal_handlers(app: HealthMonitorApplication) -> None:
    """
    Install SIGTERM / SIGINT handlers so the monitor shuts down gracefully
    even when killed by the OS.
    """
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, app.request_stop)
        except (NotImplementedError, OSError):
            # Not supported on Windows — fall back to KeyboardInterrupt
            pass


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

async def main() -> int:
    """
    Async main — creates the app, starts it, and runs until shutdown.

    Returns:
        Process exit code
    """
    settings = get_settings()

    logging_settings = settings.logging
    if settings.debug and logging_settings.level == LogLevel.INFO:
        logging_settings = logging_settings.model_copy(update={"level": LogLevel.DEBUG})
    setup_logging(logging_settings)

    app = HealthMonitorApplication(settings)
    _install_signal_handlers(app)

    if not await app.startup():
        logger.error("  ✗ Startup failed — exiting")
        await app.shutdown()
        return 1

    try:
        await app.run()
    finally:
        await app.shutdown()
    return 0


# ============================================================================
# SCRIPT ENTRY POINT
# ============================================================================

def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
