"""
============================================================================
ICU HEALTH MONITOR - MONITOR SCHEDULER
============================================================================
Periodic driver for full sweeps over every active target.

Sweep
-----
1.  Snapshot the active targets from the TargetStore
2.  Probe them concurrently, bounded by an asyncio.Semaphore
3.  Record each result (history ring + status fields) and compare the
    new status with the previous one
    (a target removed or deactivated mid-sweep has its result dropped)
4.  Collect a DOWN transition (from UP or UNKNOWN) as an alert candidate
5.  Deactivate a still-active target whose newest results are all failures
    (three by default), whether or not this sweep changed its status
6.  Persist results and deactivations in the background (best-effort)
7.  Hand the candidates to the AlertDispatcher in one batch

Timing
------
The first sweep runs after a grace delay, then one every interval. A tick
that fires while the previous sweep is still running is skipped, so sweeps
never overlap and never pile up.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Coroutine, Dict, List, Optional

from config.constants import TargetStatus
from config.settings import SchedulerSettings
from monitoring.alerts import AlertDispatcher
from monitoring.models import CheckResult, Target
from monitoring.monitor import ProbeExecutor
from monitoring.notifiers import AlertMessage
from monitoring.store import TargetStore
from utils.helpers import TimeHelper
from utils.logger import get_logger, log_execution_time


logger = get_logger("MonitorScheduler")


# ============================================================================
# SWEEP REPORT
# ============================================================================

@dataclass
class SweepReport:
    """Counters describing one completed sweep."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    probed: int = 0
    up: int = 0
    down: int = 0
    went_down: List[str] = field(default_factory=list)
    recovered: List[str] = field(default_factory=list)
    deactivated: List[str] = field(default_factory=list)
    alerts_sent: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "probed": self.probed,
            "up": self.up,
            "down": self.down,
            "went_down": list(self.went_down),
            "recovered": list(self.recovered),
            "deactivated": list(self.deactivated),
            "alerts_sent": self.alerts_sent,
        }


# ============================================================================
# SCHEDULER
# ============================================================================

class MonitorScheduler:
    """
    Runs sweeps on a fixed interval.

    Usage
    -----
        scheduler = MonitorScheduler(store, probe, repository, alerts, settings)
        await scheduler.start()     # raises InitializationError if targets can't load
        # ... later ...
        await scheduler.stop()
    """

    def __init__(
        self,
        store: TargetStore,
        probe: ProbeExecutor,
        source: Any,
        alerts: Optional[AlertDispatcher] = None,
        settings: Optional[SchedulerSettings] = None,
        max_concurrent_probes: int = 50,
    ):
        self.store = store
        self.probe = probe
        self.source = source
        self.alerts = alerts
        self.settings = settings or SchedulerSettings()
        self.max_concurrent_probes = max_concurrent_probes

        self._running = False
        self._loop_task: Optional[asyncio.Task] = None
        self._sweep_task: Optional[asyncio.Task] = None
        self._sweep_lock = asyncio.Lock()

        # --- diagnostics ---
        self.sweep_count = 0
        self.skipped_ticks = 0
        self.last_report: Optional[SweepReport] = None

        logger.info(
            f"MonitorScheduler created — interval={self.settings.interval_ms}ms, "
            f"startup_delay={self.settings.startup_delay_ms}ms, "
            f"deactivation_threshold={self.settings.deactivation_threshold}, "
            f"max_concurrent={self.max_concurrent_probes}"
        )

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Load the initial targets and start the periodic loop.

        Raises
        ------
        InitializationError
            If the active-target list cannot be obtained.
        """
        if self._running:
            logger.warning("MonitorScheduler is already running")
            return

        await self.store.initialize(self.source)
        await self.store.start()

        self._running = True
        self._loop_task = asyncio.create_task(self._main_loop())
        logger.info(f"✓ MonitorScheduler started — {len(self.store.list_active())} active targets")

    async def stop(self) -> None:
        """Stop the loop, cancel an in-flight sweep, stop the store."""
        self._running = False

        for task in (self._loop_task, self._sweep_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._loop_task = None
        self._sweep_task = None

        await self.store.stop()
        logger.info("✓ MonitorScheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def sweep_in_progress(self) -> bool:
        return self._sweep_lock.locked()

    # ------------------------------------------------------------------
    # MAIN LOOP
    # ------------------------------------------------------------------

    async def _main_loop(self) -> None:
        loop = asyncio.get_running_loop()
        logger.info(f"[Sweep] First sweep in {self.settings.startup_delay_seconds:.1f}s")
        await asyncio.sleep(self.settings.startup_delay_seconds)

        next_fire = loop.time()
        while self._running:
            if self._sweep_task is not None and not self._sweep_task.done():
                self.skipped_ticks += 1
                logger.warning("[Sweep] Previous sweep still running, skipping this tick")
            else:
                self._sweep_task = asyncio.create_task(self.run_sweep())

            next_fire += self.settings.interval_seconds
            await asyncio.sleep(max(0.0, next_fire - loop.time()))

    async def run_sweep(self) -> Optional[SweepReport]:
        """
        Run one sweep now.

        Returns
        -------
        SweepReport | None
            None when another sweep is already in progress (skipped) or
            the sweep failed unexpectedly.
        """
        if self._sweep_lock.locked():
            self.skipped_ticks += 1
            logger.warning("[Sweep] Sweep already in progress, skipping")
            return None

        async with self._sweep_lock:
            try:
                report = await self._sweep()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("[Sweep] Unhandled error during sweep")
                return None

        self.sweep_count += 1
        self.last_report = report
        return report

    # ------------------------------------------------------------------
    # SWEEP
    # ------------------------------------------------------------------

    @log_execution_time
    async def _sweep(self) -> SweepReport:
        report = SweepReport(started_at=TimeHelper.get_utc_now())
        targets = self.store.list_active()

        if not targets:
            logger.info("[Sweep] No active targets to check")
            report.finished_at = TimeHelper.get_utc_now()
            return report

        logger.info(f"[Sweep] Checking {len(targets)} active targets")

        semaphore = asyncio.Semaphore(self.max_concurrent_probes)
        results = await asyncio.gather(
            *(self._probe_guarded(target, semaphore) for target in targets),
            return_exceptions=True,
        )

        candidates: List[AlertMessage] = []
        background: List[asyncio.Task] = []

        for target, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.error(f"[Sweep] Probe for {target.id} raised: {result!r}")
                continue

            cached = self.store.get(target.id)
            if cached is not None and not cached.is_active:
                logger.debug(f"[Sweep] Target {target.id} deactivated during sweep, result dropped")
                continue

            report.probed += 1
            outcome = self.store.record_result(target.id, result)
            if outcome is None:
                logger.debug(f"[Sweep] Target {target.id} removed during sweep, result dropped")
                continue

            previous, current_status = outcome
            current = self.store.get(target.id)
            background.append(
                self._spawn(self._persist_result(current, result), f"persist result {target.id}")
            )

            if current_status == TargetStatus.UP:
                report.up += 1
            else:
                report.down += 1

            if current_status == TargetStatus.DOWN and previous != TargetStatus.DOWN:
                report.went_down.append(target.id)
                candidates.append(AlertMessage(target=current, result=result))
                logger.warning(
                    f"[Sweep] 🔴 DOWN — {target.url} "
                    f"(status={result.status_code}, error={result.error})"
                )
            elif current_status == TargetStatus.UP and previous == TargetStatus.DOWN:
                report.recovered.append(target.id)
                logger.info(f"[Sweep] 🟢 RECOVERED — {target.url}")

            if self._should_deactivate(current):
                self.store.deactivate(target.id)
                report.deactivated.append(target.id)
                logger.warning(
                    f"[Sweep] Deactivating {target.url} after "
                    f"{self.settings.deactivation_threshold} consecutive failures"
                )
                background.append(
                    self._spawn(self._persist_deactivation(target.id), f"persist deactivation {target.id}")
                )

        try:
            if candidates and self.alerts is not None:
                try:
                    report.alerts_sent = await self.alerts.dispatch(candidates)
                except Exception:
                    logger.exception("[Sweep] Alert dispatch failed")

            if background:
                await asyncio.gather(*background, return_exceptions=True)
        finally:
            # Cancelled sweep: persistence must not outlive the scheduler
            pending = [task for task in background if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning(f"[Sweep] Cancelled {len(pending)} pending persistence writes")

        report.finished_at = TimeHelper.get_utc_now()
        logger.info(
            f"[Sweep] Done — {report.up} up, {report.down} down, "
            f"{len(report.went_down)} went down, {len(report.recovered)} recovered, "
            f"{len(report.deactivated)} deactivated, {report.alerts_sent} alerts sent"
        )
        return report

    def _should_deactivate(self, target: Optional[Target]) -> bool:
        if target is None or not target.is_active:
            return False
        return self.store.has_failed_consecutively(target.id, self.settings.deactivation_threshold)

    async def _probe_guarded(self, target: Target, semaphore: asyncio.Semaphore) -> CheckResult:
        async with semaphore:
            return await self.probe.check(target.url)

    # ------------------------------------------------------------------
    # PERSISTENCE (best-effort)
    # ------------------------------------------------------------------

    @staticmethod
    def _spawn(coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task:
        return asyncio.create_task(coro, name=name)

    async def _persist_result(self, target: Target, result: CheckResult) -> None:
        try:
            await self.source.persist_check_result(target, result)
        except Exception as e:
            logger.error(f"[Sweep] Failed to persist check result for {target.id}: {e}")

    async def _persist_deactivation(self, target_id: str) -> None:
        try:
            await self.source.persist_deactivation(target_id)
        except Exception as e:
            logger.error(f"[Sweep] Failed to persist deactivation of {target_id}: {e}")

    # ------------------------------------------------------------------
    # DIAGNOSTICS
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "sweep_in_progress": self.sweep_in_progress,
            "sweep_count": self.sweep_count,
            "skipped_ticks": self.skipped_ticks,
            "active_targets": len(self.store.list_active()),
            "last_sweep": self.last_report.to_dict() if self.last_report else None,
        }
