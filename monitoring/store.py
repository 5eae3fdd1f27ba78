"""
============================================================================
ICU HEALTH MONITOR - TARGET STORE
============================================================================
In-memory cache of monitored targets and their recent check history.

The store is the scheduler's source of truth for "what to probe now".
It is populated from the durable store at startup and kept warm by a
change-feed whose events are applied by a single writer task, so cache
mutations never interleave with each other. Every public method is
synchronous; on one event loop that makes each call atomic with respect
to a running sweep.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
from collections import deque
from dataclasses import replace
from typing import Any, Deque, Dict, Iterable, Optional, Tuple

from config.constants import ChangeType, Defaults, TargetStatus
from exceptions.base import InitializationError
from exceptions.monitoring import ChangeFeedError
from monitoring.models import CheckResult, Target, TargetChange
from utils.logger import get_logger


logger = get_logger("TargetStore")


# ============================================================================
# HISTORY RING
# ============================================================================

class HistoryRing:
    """
    Bounded newest-first sequence of check results for one target.

    Pushing beyond the capacity evicts the oldest entry. The strike
    window counts how many of the newest entries are eligible for
    `all_failed`; restarting it leaves the entries in place for display.
    """

    __slots__ = ("_entries", "_window")

    def __init__(self, capacity: int = Defaults.HISTORY_SIZE):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._entries: Deque[CheckResult] = deque(maxlen=capacity)
        self._window = 0

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def push(self, result: CheckResult) -> None:
        self._entries.appendleft(result)
        self._window = min(self._window + 1, self.capacity)

    def restart_window(self) -> None:
        self._window = 0

    def latest(self) -> Optional[CheckResult]:
        return self._entries[0] if self._entries else None

    def newest(self, count: int) -> Tuple[CheckResult, ...]:
        return tuple(self._entries)[:count]

    def all_failed(self, count: int) -> bool:
        """True when the window holds at least *count* entries and the newest *count* all failed."""
        if self._window < count:
            return False
        return not any(result.is_success for result in self.newest(count))

    def snapshot(self) -> Tuple[CheckResult, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self.snapshot())


# ============================================================================
# CHANGE FEED
# ============================================================================

class ChangeFeed:
    """
    Queue of target change events.

    Producers (the external request layer, via the repository) call
    :meth:`publish`. The target store is the only consumer. A producer
    that loses its upstream subscription calls :meth:`disconnect`, which
    makes the consumer resync from the durable store. :meth:`close`
    ends iteration for good.
    """

    _CLOSED = object()

    def __init__(self, maxsize: int = 0):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, change: TargetChange) -> None:
        if self._closed:
            raise ChangeFeedError("Change feed is closed", details={"target_id": change.id})
        self._queue.put_nowait(change)

    def disconnect(self, reason: str = "change feed disconnected") -> None:
        if not self._closed:
            self._queue.put_nowait(ChangeFeedError(reason))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    def pending(self) -> int:
        return self._queue.qsize()

    def __aiter__(self) -> "ChangeFeed":
        return self

    async def __anext__(self) -> TargetChange:
        item = await self._queue.get()
        if item is self._CLOSED:
            raise StopAsyncIteration
        if isinstance(item, ChangeFeedError):
            raise item
        return item


# ============================================================================
# TARGET STORE
# ============================================================================

class TargetStore:
    """
    Cache of targets plus one history ring per target.

    Lifecycle
    ---------
    1.  ``await store.initialize(source)``  — loads active targets, fails loudly
    2.  ``await store.start()``             — launches the change-feed writer
    3.  ``await store.stop()``              — stops the writer, clears the cache
    """

    def __init__(
        self,
        history_size: int = Defaults.HISTORY_SIZE,
        feed: Optional[ChangeFeed] = None,
        resync_delay: float = 5.0,
    ):
        self.history_size = history_size
        self.feed = feed
        self.resync_delay = resync_delay

        self._targets: Dict[str, Target] = {}
        self._history: Dict[str, HistoryRing] = {}
        self._source: Any = None

        self._running = False
        self._feed_task: Optional[asyncio.Task] = None
        self.resync_count = 0

    # ------------------------------------------------------------------
    # READS
    # ------------------------------------------------------------------

    def get(self, target_id: str) -> Optional[Target]:
        return self._targets.get(target_id)

    def list_active(self) -> Tuple[Target, ...]:
        """Immutable snapshot of the currently active targets."""
        return tuple(t for t in self._targets.values() if t.is_active)

    def list_all(self) -> Tuple[Target, ...]:
        return tuple(self._targets.values())

    def history(self, target_id: str) -> Tuple[CheckResult, ...]:
        """Newest-first results for *target_id*, empty when unknown."""
        ring = self._history.get(target_id)
        return ring.snapshot() if ring else ()

    def has_failed_consecutively(self, target_id: str, count: int) -> bool:
        ring = self._history.get(target_id)
        return ring.all_failed(count) if ring else False

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, target_id: object) -> bool:
        return target_id in self._targets

    # ------------------------------------------------------------------
    # WRITES
    # ------------------------------------------------------------------

    def upsert(self, target: Target) -> Target:
        """
        Insert or replace a target.

        Status fields already advanced by a sweep win over a stale copy
        coming back from the durable store. Re-activating an inactive
        target restarts its strike window, so failures from before the
        deactivation never count toward the next one.
        """
        existing = self._targets.get(target.id)
        if existing is not None and not existing.is_active and target.is_active:
            ring = self._history.get(target.id)
            if ring is not None:
                ring.restart_window()
            logger.info(f"[Store] Target {target.id} re-activated, strike window restarted")

        if existing is not None and existing.last_checked_at is not None:
            incoming_checked = target.last_checked_at
            if incoming_checked is None or incoming_checked <= existing.last_checked_at:
                target = replace(
                    target,
                    last_status=existing.last_status,
                    last_checked_at=existing.last_checked_at,
                    last_status_change_at=existing.last_status_change_at,
                )

        self._targets[target.id] = target
        if target.id not in self._history:
            self._history[target.id] = HistoryRing(self.history_size)

        return target

    def remove(self, target_id: str) -> Optional[Target]:
        """Drop a target and discard its history."""
        self._history.pop(target_id, None)
        return self._targets.pop(target_id, None)

    def deactivate(self, target_id: str) -> Optional[Target]:
        """Mark a target inactive; its history is kept for display."""
        target = self._targets.get(target_id)
        if target is None or not target.is_active:
            return target
        target = target.deactivated()
        self._targets[target_id] = target
        return target

    def record_result(
        self,
        target_id: str,
        result: CheckResult,
    ) -> Optional[Tuple[TargetStatus, TargetStatus]]:
        """
        Push *result* to the front of the target's ring and advance its
        status fields.

        Returns:
            (previous status, new status), or None if the target is no
            longer cached (removed while its probe was in flight)
        """
        target = self._targets.get(target_id)
        if target is None:
            return None

        previous = target.last_status
        self._history[target_id].push(result)
        updated = target.with_result(result)
        self._targets[target_id] = updated

        return previous, updated.last_status

    def apply(self, change: TargetChange) -> None:
        """Apply one change-feed event."""
        if change.type == ChangeType.DELETE:
            removed = self.remove(change.id)
            logger.info(f"[Store] Target {change.id} removed" if removed else
                        f"[Store] Delete for unknown target {change.id} ignored")
            return

        target = self.upsert(change.target)
        verb = "added" if change.type == ChangeType.INSERT else "updated"
        state = "active" if target.is_active else "inactive"
        logger.info(f"[Store] Target {target.id} {verb} ({target.url}, {state})")

    def load(self, targets: Iterable[Target]) -> None:
        for target in targets:
            self.upsert(target)

    def warm_history(self, target_id: str, results: Iterable[CheckResult]) -> None:
        """Seed a ring from newest-first results already persisted."""
        ring = self._history.get(target_id)
        if ring is None:
            return
        for result in reversed(list(results)[: self.history_size]):
            ring.push(result)

    def clear(self) -> None:
        self._targets.clear()
        self._history.clear()

    # ------------------------------------------------------------------
    # DURABLE STORE SYNC
    # ------------------------------------------------------------------

    async def initialize(self, source: Any) -> int:
        """
        Populate from the durable store.

        Parameters
        ----------
        source :
            Object providing ``list_active_targets()`` and optionally
            ``recent_check_results(target_id, limit)``.

        Raises
        ------
        InitializationError
            If the active-target list cannot be obtained.
        """
        self._source = source
        try:
            targets = await source.list_active_targets()
        except Exception as e:
            raise InitializationError(
                "Failed to load active targets from the durable store",
                component="TargetStore",
                cause=e,
            ) from e

        self.load(targets)
        await self._warm_from_source(targets)

        logger.info(f"[Store] Loaded {len(targets)} active targets")
        return len(targets)

    async def resync(self) -> None:
        """
        Re-list active targets after a change-feed disconnect.

        Cached targets missing from the fresh list are marked inactive.
        """
        if self._source is None:
            logger.warning("[Store] Resync requested before initialize(), skipping")
            return

        targets = await self._source.list_active_targets()
        active_ids = {t.id for t in targets}

        for target in targets:
            known = target.id in self._targets
            self.upsert(target)
            if not known:
                await self._warm_from_source([target])

        for target in self.list_active():
            if target.id not in active_ids:
                self.deactivate(target.id)

        self.resync_count += 1
        logger.info(f"[Store] Resynced — {len(targets)} active targets")

    async def _warm_from_source(self, targets: Iterable[Target]) -> None:
        fetch = getattr(self._source, "recent_check_results", None)
        if fetch is None:
            return

        for target in targets:
            try:
                results = await fetch(target.id, self.history_size)
            except Exception as e:
                logger.warning(f"[Store] Could not warm history for {target.id}: {e}")
                continue
            self.warm_history(target.id, results)

    # ------------------------------------------------------------------
    # CHANGE FEED WRITER
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start consuming the change-feed."""
        if self.feed is None:
            logger.info("[Store] No change feed configured")
            return
        if self._running:
            logger.warning("[Store] Change feed writer is already running")
            return

        self._running = True
        self._feed_task = asyncio.create_task(self._consume_feed())
        logger.info("✓ TargetStore started — change feed writer is active")

    async def stop(self) -> None:
        """Stop the writer task and drop cached state."""
        self._running = False
        if self.feed is not None:
            self.feed.close()
        if self._feed_task:
            self._feed_task.cancel()
            try:
                await self._feed_task
            except asyncio.CancelledError:
                pass
            self._feed_task = None
        self.clear()
        logger.info("✓ TargetStore stopped")

    async def _consume_feed(self) -> None:
        while self._running:
            try:
                async for change in self.feed:
                    try:
                        self.apply(change)
                    except Exception as e:
                        logger.error(f"[Store] Failed to apply {change.type.value} for {change.id}: {e}")
                if self.feed.closed:
                    logger.info("[Store] Change feed closed")
                    return
            except asyncio.CancelledError:
                raise
            except ChangeFeedError as e:
                logger.warning(f"[Store] {e.message}, resyncing in {self.resync_delay}s")

            await self._resync_until_ok()

    async def _resync_until_ok(self) -> None:
        while self._running:
            await asyncio.sleep(self.resync_delay)
            try:
                await self.resync()
                return
            except Exception as e:
                logger.error(f"[Store] Resync failed, retrying in {self.resync_delay}s: {e}")
