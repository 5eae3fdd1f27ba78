from __future__ import annotations

from datetime import timedelta

import pytest

from config.constants import ChangeType, TargetStatus
from exceptions.base import InitializationError
from exceptions.monitoring import ChangeFeedError
from monitoring.models import TargetChange
from monitoring.store import ChangeFeed, HistoryRing, TargetStore
from tests.conftest import FakeSource, failed, make_target, succeeded, wait_until


# ---------------------------------------------------------------------------
# HistoryRing
# ---------------------------------------------------------------------------

def test_ring_keeps_newest_first_and_evicts_oldest() -> None:
    ring = HistoryRing(capacity=10)
    results = [succeeded(200 + i) for i in range(12)]
    for result in results:
        ring.push(result)

    assert len(ring) == 10
    assert ring.latest() is results[-1]
    assert [r.status_code for r in ring] == [211, 210, 209, 208, 207, 206, 205, 204, 203, 202]


def test_ring_all_failed_needs_enough_entries() -> None:
    ring = HistoryRing(capacity=10)
    ring.push(failed())
    ring.push(failed())
    assert ring.all_failed(3) is False

    ring.push(failed())
    assert ring.all_failed(3) is True

    ring.push(succeeded())
    assert ring.all_failed(3) is False


def test_ring_restart_window_keeps_entries() -> None:
    ring = HistoryRing(capacity=10)
    for _ in range(3):
        ring.push(failed())
    ring.restart_window()

    assert len(ring) == 3
    assert ring.all_failed(3) is False

    ring.push(failed())
    ring.push(failed())
    assert ring.all_failed(3) is False
    ring.push(failed())
    assert ring.all_failed(3) is True


def test_ring_rejects_zero_capacity() -> None:
    with pytest.raises(ValueError):
        HistoryRing(capacity=0)


# ---------------------------------------------------------------------------
# TargetStore writes
# ---------------------------------------------------------------------------

def test_record_result_advances_status_and_reports_transition() -> None:
    store = TargetStore(history_size=10)
    store.upsert(make_target("t1"))

    first = failed()
    assert store.record_result("t1", first) == (TargetStatus.UNKNOWN, TargetStatus.DOWN)
    target = store.get("t1")
    assert target.last_status == TargetStatus.DOWN
    assert target.last_checked_at == first.check_time
    assert target.last_status_change_at == first.check_time

    second = failed()
    assert store.record_result("t1", second) == (TargetStatus.DOWN, TargetStatus.DOWN)
    target = store.get("t1")
    assert target.last_checked_at == second.check_time
    assert target.last_status_change_at == first.check_time
    assert store.history("t1") == (second, first)


def test_record_result_for_unknown_target_is_dropped() -> None:
    store = TargetStore()
    assert store.record_result("ghost", failed()) is None
    assert store.history("ghost") == ()


def test_upsert_keeps_newer_cached_status() -> None:
    store = TargetStore()
    store.upsert(make_target("t1"))
    result = failed()
    store.record_result("t1", result)

    stale = make_target("t1", url="https://moved.example.com/", last_status=TargetStatus.UP,
                        last_checked_at=result.check_time - timedelta(minutes=5))
    merged = store.upsert(stale)

    assert merged.url == "https://moved.example.com/"
    assert merged.last_status == TargetStatus.DOWN
    assert merged.last_checked_at == result.check_time
    assert len(store.history("t1")) == 1


def test_reactivation_restarts_strike_window() -> None:
    store = TargetStore()
    store.upsert(make_target("t1"))
    for _ in range(3):
        store.record_result("t1", failed())
    assert store.has_failed_consecutively("t1", 3) is True

    store.deactivate("t1")
    store.upsert(make_target("t1"))

    assert store.has_failed_consecutively("t1", 3) is False
    assert len(store.history("t1")) == 3

    # Updating an already active target leaves the window alone
    store.record_result("t1", failed())
    store.upsert(make_target("t1", url="https://moved.example.com/"))
    store.record_result("t1", failed())
    store.record_result("t1", failed())
    assert store.has_failed_consecutively("t1", 3) is True


def test_remove_discards_history_but_deactivate_keeps_it() -> None:
    store = TargetStore()
    store.load([make_target("t1"), make_target("t2")])
    store.record_result("t1", failed())
    store.record_result("t2", failed())

    store.remove("t1")
    store.deactivate("t2")

    assert "t1" not in store
    assert store.history("t1") == ()
    assert store.get("t2").is_active is False
    assert len(store.history("t2")) == 1
    assert store.list_active() == ()
    assert [t.id for t in store.list_all()] == ["t2"]


def test_list_active_is_a_snapshot() -> None:
    store = TargetStore()
    store.load([make_target("t1"), make_target("t2")])

    snapshot = store.list_active()
    store.remove("t1")

    assert [t.id for t in snapshot] == ["t1", "t2"]
    assert [t.id for t in store.list_active()] == ["t2"]


def test_apply_change_events() -> None:
    store = TargetStore()
    store.apply(TargetChange.insert(make_target("t1")))
    assert store.get("t1").is_active is True

    store.apply(TargetChange.update(make_target("t1", is_active=False)))
    assert store.get("t1").is_active is False

    store.apply(TargetChange.delete("t1"))
    assert "t1" not in store

    # Unknown ids are ignored
    store.apply(TargetChange.delete("missing"))


def test_change_requires_target_for_upserts() -> None:
    with pytest.raises(ValueError):
        TargetChange(type=ChangeType.INSERT, target_id="t1")
    with pytest.raises(ValueError):
        TargetChange(type=ChangeType.DELETE)


def test_warm_history_preserves_order_and_bound() -> None:
    store = TargetStore(history_size=3)
    store.upsert(make_target("t1"))
    newest_first = [succeeded(200 + i) for i in range(5)]

    store.warm_history("t1", newest_first)

    assert store.history("t1") == tuple(newest_first[:3])


# ---------------------------------------------------------------------------
# Durable store sync
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_initialize_loads_active_targets_and_history() -> None:
    source = FakeSource([make_target("t1"), make_target("t2", is_active=False)])
    source.history["t1"] = [failed(), succeeded()]
    store = TargetStore(history_size=10)

    loaded = await store.initialize(source)

    assert loaded == 1
    assert [t.id for t in store.list_active()] == ["t1"]
    assert [r.is_success for r in store.history("t1")] == [False, True]


@pytest.mark.asyncio
async def test_initialize_failure_is_loud() -> None:
    source = FakeSource([make_target("t1")])
    source.fail_listing = True
    store = TargetStore()

    with pytest.raises(InitializationError) as excinfo:
        await store.initialize(source)

    assert excinfo.value.details["component"] == "TargetStore"
    error = excinfo.value
    assert str(error).startswith("[1200] ")
    assert error.to_dict()["recoverable"] is False
    assert error.to_dict()["cause"] == "durable store unavailable"
    assert "Cause: durable store unavailable" in error.log_format()
    assert len(store) == 0


@pytest.mark.asyncio
async def test_change_feed_keeps_cache_warm() -> None:
    feed = ChangeFeed()
    store = TargetStore(feed=feed)
    await store.initialize(FakeSource([make_target("t1")]))
    await store.start()
    try:
        feed.publish(TargetChange.insert(make_target("t2")))
        feed.publish(TargetChange.delete("t1"))
        await wait_until(lambda: "t2" in store and "t1" not in store)
    finally:
        await store.stop()

    assert len(store) == 0


@pytest.mark.asyncio
async def test_feed_disconnect_triggers_resync() -> None:
    source = FakeSource([make_target("t1"), make_target("t2")])
    feed = ChangeFeed()
    store = TargetStore(feed=feed, resync_delay=0)
    await store.initialize(source)
    store.record_result("t2", failed())
    await store.start()
    try:
        del source.targets["t2"]
        source.targets["t3"] = make_target("t3")
        feed.disconnect("subscription lost")

        await wait_until(lambda: store.resync_count == 1)

        assert {t.id for t in store.list_active()} == {"t1", "t3"}
        assert store.get("t2").is_active is False
        assert len(store.history("t2")) == 1

        # The writer keeps consuming after a resync
        feed.publish(TargetChange.insert(make_target("t4")))
        await wait_until(lambda: "t4" in store)
    finally:
        await store.stop()


@pytest.mark.asyncio
async def test_closed_feed_rejects_publish() -> None:
    feed = ChangeFeed()
    feed.close()

    with pytest.raises(ChangeFeedError):
        feed.publish(TargetChange.insert(make_target()))
