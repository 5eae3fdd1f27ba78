from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import AsyncIterator, Tuple

import pytest
import pytest_asyncio

from config.constants import ChangeType, NotificationProvider, TargetStatus
from config.settings import DatabaseSettings
from database.manager import DatabaseManager, MonitoringRepository
from exceptions.database import DatabaseNotFoundError
from exceptions.validation import InvalidURLError
from monitoring.models import CheckResult
from monitoring.store import ChangeFeed


@pytest_asyncio.fixture
async def repository(tmp_path: Path) -> AsyncIterator[Tuple[MonitoringRepository, ChangeFeed]]:
    db = DatabaseManager(DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'monitor.db'}"))
    await db.initialize()
    feed = ChangeFeed()
    try:
        yield MonitoringRepository(db, feed=feed), feed
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_register_target_publishes_insert(repository) -> None:
    repo, feed = repository

    target = await repo.register_target("https://example.com/health", "u1")

    assert target.is_active is True
    assert target.last_status == TargetStatus.UNKNOWN
    assert feed.pending() == 1
    change = await feed.__anext__()
    assert change.type == ChangeType.INSERT
    assert change.target == target
    assert [t.id for t in await repo.list_active_targets()] == [target.id]


@pytest.mark.asyncio
async def test_register_rejects_invalid_url(repository) -> None:
    repo, feed = repository

    with pytest.raises(InvalidURLError):
        await repo.register_target("not a url", "u1")

    assert feed.pending() == 0


@pytest.mark.asyncio
async def test_check_results_round_trip_newest_first(repository) -> None:
    repo, _ = repository
    target = await repo.register_target("https://example.com/", "u1")

    older = CheckResult(status_code=200, response_time_ms=15, is_success=True)
    newer = CheckResult(
        status_code=None,
        response_time_ms=5000,
        is_success=False,
        error="Request timed out after 5000ms",
        check_time=older.check_time + timedelta(minutes=1),
    )
    await repo.persist_check_result(target.with_result(older), older)
    await repo.persist_check_result(target.with_result(older).with_result(newer), newer)

    history = await repo.recent_check_results(target.id, limit=10)
    assert [r.is_success for r in history] == [False, True]
    assert history[0].error == "Request timed out after 5000ms"
    assert history[0].status_code is None
    assert history[1].status_code == 200

    stored = await repo.get_target(target.id)
    assert stored.last_status == TargetStatus.DOWN
    assert stored.last_checked_at == newer.check_time


@pytest.mark.asyncio
async def test_deactivation_is_persisted(repository) -> None:
    repo, _ = repository
    target = await repo.register_target("https://example.com/", "u1")

    await repo.persist_deactivation(target.id)

    assert await repo.list_active_targets() == []
    assert (await repo.get_target(target.id)).is_active is False

    with pytest.raises(DatabaseNotFoundError):
        await repo.persist_deactivation("missing")


@pytest.mark.asyncio
async def test_toggle_and_delete_publish_changes(repository) -> None:
    repo, feed = repository
    target = await repo.register_target("https://example.com/", "u1")
    await repo.persist_check_result(target, CheckResult(status_code=500, response_time_ms=3, is_success=False))
    await feed.__anext__()

    paused = await repo.set_target_active(target.id, False)
    assert paused.is_active is False
    assert (await feed.__anext__()).type == ChangeType.UPDATE

    assert await repo.delete_target(target.id) is True
    change = await feed.__anext__()
    assert change.type == ChangeType.DELETE
    assert change.id == target.id
    assert await repo.recent_check_results(target.id) == []

    assert await repo.delete_target(target.id) is False
    with pytest.raises(DatabaseNotFoundError):
        await repo.set_target_active(target.id, True)


@pytest.mark.asyncio
async def test_notification_settings_lookup(repository) -> None:
    repo, _ = repository
    await repo.set_notification_preference("u1", True, NotificationProvider.SLACK)
    await repo.set_notification_preference("u2", False)
    await repo.upsert_channel_config("u1", NotificationProvider.SLACK, {"webhook_url": "https://hooks.slack.test/a"})
    await repo.upsert_channel_config("u1", NotificationProvider.SLACK, {"webhook_url": "https://hooks.slack.test/b"})
    await repo.upsert_channel_config("u2", NotificationProvider.DISCORD, {"webhook_url": "https://discord.test/c"})

    preferences = await repo.get_notification_preferences(["u1", "u2", "u3"])
    assert set(preferences) == {"u1", "u2"}
    assert preferences["u1"].active_provider == NotificationProvider.SLACK
    assert preferences["u2"].notifications_enabled is False

    configs = await repo.get_channel_configs([("u1", NotificationProvider.SLACK), ("u2", NotificationProvider.SLACK)])
    assert list(configs) == [("u1", NotificationProvider.SLACK)]
    assert configs[("u1", NotificationProvider.SLACK)].credentials == {"webhook_url": "https://hooks.slack.test/b"}


@pytest.mark.asyncio
async def test_connection_check(repository) -> None:
    repo, _ = repository
    assert await repo.db.check_connection() is True
