from __future__ import annotations

from pathlib import Path

import pytest

from config.settings import DatabaseSettings, SchedulerSettings, Settings, StatusServerSettings
from main import HealthMonitorApplication
from monitoring.status_server import StatusServer
from tests.conftest import wait_until


def _settings(tmp_path: Path) -> Settings:
    return Settings(
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}"),
        scheduler=SchedulerSettings(startup_delay_ms=600000),
        status_server=StatusServerSettings(enabled=False),
    )


@pytest.mark.asyncio
async def test_startup_wires_components_and_shuts_down(tmp_path: Path) -> None:
    app = HealthMonitorApplication(_settings(tmp_path))

    assert await app.startup() is True
    try:
        assert app.scheduler.is_running is True
        target = await app.repository.register_target("https://example.com/", "u1")
        await wait_until(lambda: target.id in app.store)
        assert target.id in app.store
    finally:
        await app.shutdown()

    assert app.scheduler.is_running is False
    assert app.db_manager.is_initialized is False


@pytest.mark.asyncio
async def test_startup_reports_database_failure(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    settings = _settings(tmp_path)
    settings.database = DatabaseSettings(url=f"sqlite+aiosqlite:///{blocker / 'app.db'}")
    app = HealthMonitorApplication(settings)

    assert await app.startup() is False
    await app.shutdown()
    assert app.scheduler is None


@pytest.mark.asyncio
async def test_startup_reports_unexpected_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    async def broken_start(self: StatusServer) -> None:
        raise RuntimeError("site already started")

    monkeypatch.setattr(StatusServer, "start", broken_start)
    settings = _settings(tmp_path)
    settings.status_server = StatusServerSettings(enabled=True)
    app = HealthMonitorApplication(settings)

    assert await app.startup() is False
    await app.shutdown()
    assert app.scheduler.is_running is False
    assert app.db_manager.is_initialized is False
