from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import httpx
import pytest

from config.constants import NotificationProvider
from config.settings import HealthCheckSettings, SchedulerSettings
from monitoring.models import (
    ChannelConfig,
    CheckResult,
    NotificationPreference,
    Target,
)


class FakeSource:
    """In-memory stand-in for MonitoringRepository."""

    def __init__(self, targets: Iterable[Target] = ()) -> None:
        self.targets: Dict[str, Target] = {t.id: t for t in targets}
        self.history: Dict[str, List[CheckResult]] = {}
        self.preferences: Dict[str, NotificationPreference] = {}
        self.configs: Dict[Tuple[str, NotificationProvider], ChannelConfig] = {}

        self.persisted: List[Tuple[Target, CheckResult]] = []
        self.deactivated: List[str] = []
        self.preference_calls: List[List[str]] = []
        self.config_calls: List[List[Tuple[str, NotificationProvider]]] = []

        self.fail_listing = False
        self.fail_persist = False

    async def list_active_targets(self) -> List[Target]:
        if self.fail_listing:
            raise ConnectionError("durable store unavailable")
        return [t for t in self.targets.values() if t.is_active]

    async def recent_check_results(self, target_id: str, limit: int = 10) -> List[CheckResult]:
        return list(self.history.get(target_id, []))[:limit]

    async def persist_check_result(self, target: Target, result: CheckResult) -> None:
        if self.fail_persist:
            raise ConnectionError("write failed")
        self.persisted.append((target, result))

    async def persist_deactivation(self, target_id: str) -> None:
        if self.fail_persist:
            raise ConnectionError("write failed")
        self.deactivated.append(target_id)

    async def get_notification_preferences(self, user_ids: Iterable[str]) -> Dict[str, NotificationPreference]:
        ids = list(user_ids)
        self.preference_calls.append(ids)
        return {uid: self.preferences[uid] for uid in ids if uid in self.preferences}

    async def get_channel_configs(self, pairs: Iterable[Tuple[str, NotificationProvider]]) -> Dict[Tuple[str, NotificationProvider], ChannelConfig]:
        wanted = list(pairs)
        self.config_calls.append(wanted)
        return {key: self.configs[key] for key in wanted if key in self.configs}

    def enable_alerts(self, user_id: str, provider: NotificationProvider = NotificationProvider.SLACK, **credentials: Any) -> None:
        self.preferences[user_id] = NotificationPreference(
            user_id=user_id,
            notifications_enabled=True,
            active_provider=provider,
        )
        self.configs[(user_id, provider)] = ChannelConfig(
            user_id=user_id,
            provider=provider,
            credentials=credentials or {"webhook_url": "https://hooks.example.com/x"},
        )


class ScriptedProbe:
    """Probe returning a scripted success/failure sequence per URL."""

    def __init__(self, script: Optional[Dict[str, List[bool]]] = None) -> None:
        self.script = {url: list(outcomes) for url, outcomes in (script or {}).items()}
        self.calls: List[str] = []

    async def check(self, url: str) -> CheckResult:
        self.calls.append(url)
        outcomes = self.script.get(url)
        ok = outcomes.pop(0) if outcomes else True
        if ok:
            return CheckResult(status_code=200, response_time_ms=12, is_success=True)
        return CheckResult(status_code=503, response_time_ms=40, is_success=False)


class RecordingAlerts:
    """AlertDispatcher stand-in that records each batch."""

    def __init__(self) -> None:
        self.batches: List[list] = []

    async def dispatch(self, candidates) -> int:
        self.batches.append(list(candidates))
        return len(candidates)

    @property
    def alerted_ids(self) -> List[str]:
        return [alert.target.id for batch in self.batches for alert in batch]


def make_target(target_id: str = "t1", url: Optional[str] = None, owner_id: str = "u1", **kwargs: Any) -> Target:
    return Target(id=target_id, url=url or f"https://{target_id}.example.com/", owner_id=owner_id, **kwargs)


def failed(code: Optional[int] = 503) -> CheckResult:
    return CheckResult(status_code=code, response_time_ms=30, is_success=False)


def succeeded(code: int = 200) -> CheckResult:
    return CheckResult(status_code=code, response_time_ms=10, is_success=True)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def mock_transport_factory(default: Callable, ipv4: Optional[Callable] = None) -> Callable[[bool], httpx.AsyncBaseTransport]:
    """Transport factory routing each network path to its own handler."""

    def factory(force_ipv4: bool) -> httpx.AsyncBaseTransport:
        handler = ipv4 if (force_ipv4 and ipv4 is not None) else default
        return httpx.MockTransport(handler)

    return factory


@pytest.fixture
def healthcheck_settings() -> HealthCheckSettings:
    return HealthCheckSettings(timeout_ms=2000, debug=True)


@pytest.fixture
def scheduler_settings() -> SchedulerSettings:
    return SchedulerSettings(interval_ms=60000, startup_delay_ms=600000, resync_delay_seconds=0)


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()
