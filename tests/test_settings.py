from __future__ import annotations

import pytest
from pydantic import ValidationError

from config.settings import Environment, HealthCheckSettings, SchedulerSettings, Settings


def test_probe_defaults() -> None:
    settings = HealthCheckSettings()

    assert settings.timeout_ms == 5000
    assert settings.timeout_seconds == 5.0
    assert settings.methods == ("HEAD", "GET")
    assert settings.fallback_statuses == frozenset({405, 501})
    assert settings.status_policy == (frozenset(), ((200, 299),))
    assert settings.use_ipv4_first is False
    assert settings.request_headers["User-Agent"] == settings.user_agent


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HEALTHCHECK_TIMEOUT_MS", "2500")
    monkeypatch.setenv("HEALTHCHECK_METHOD_ORDER", "get")
    monkeypatch.setenv("HEALTHCHECK_ALLOWED_STATUS_CODES", "200-399,401")
    monkeypatch.setenv("SCHEDULER_INTERVAL_MS", "30000")

    settings = Settings()

    assert settings.healthcheck.timeout_ms == 2500
    assert settings.healthcheck.methods == ("GET",)
    assert settings.healthcheck.status_policy == (frozenset({401}), ((200, 399),))
    assert settings.scheduler.interval_seconds == 30.0


@pytest.mark.parametrize(
    "field, value",
    [
        ("allowed_status_codes", "ok"),
        ("method_order", "FETCH"),
        ("method_fallback_statuses", "400-499"),
        ("timeout_ms", 10),
    ],
)
def test_invalid_probe_settings_are_rejected(field: str, value) -> None:
    with pytest.raises(ValidationError):
        HealthCheckSettings(**{field: value})


def test_scheduler_rejects_short_history() -> None:
    with pytest.raises(ValidationError):
        SchedulerSettings(history_size=2, deactivation_threshold=3)


def test_debug_follows_environment_unless_set() -> None:
    assert Settings(environment=Environment.DEVELOPMENT).debug is True
    assert Settings(environment=Environment.PRODUCTION).debug is False
    assert Settings(
        environment=Environment.PRODUCTION,
        healthcheck=HealthCheckSettings(debug=True),
    ).debug is True


def test_to_dict_hides_secrets() -> None:
    data = Settings().to_dict()

    assert "healthcheck" in data
    assert data["scheduler"]["history_size"] == 10
    assert all("token" not in key for key in data["notifications"])
