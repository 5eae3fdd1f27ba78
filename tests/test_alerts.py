from __future__ import annotations

from dataclasses import replace
from typing import List, Tuple

import pytest

from config.constants import NotificationProvider
from monitoring.alerts import AlertDispatcher
from monitoring.models import ChannelConfig
from monitoring.notifiers import AlertMessage
from tests.conftest import FakeSource, failed, make_target


class RecordingNotifier:
    def __init__(self, outcome: bool = True) -> None:
        self.outcome = outcome
        self.sent: List[Tuple[NotificationProvider, ChannelConfig, AlertMessage]] = []

    async def send(self, provider, config, alert) -> bool:
        self.sent.append((provider, config, alert))
        return self.outcome


def _candidate(target_id: str, owner_id: str) -> AlertMessage:
    return AlertMessage(target=make_target(target_id, owner_id=owner_id), result=failed())


@pytest.mark.asyncio
async def test_one_send_per_candidate_with_batched_lookups() -> None:
    source = FakeSource()
    source.enable_alerts("u1", NotificationProvider.SLACK)
    source.enable_alerts("u2", NotificationProvider.TELEGRAM, bot_token="t", chat_id="c")
    notifier = RecordingNotifier()
    dispatcher = AlertDispatcher(source, notifier)

    delivered = await dispatcher.dispatch([
        _candidate("t1", "u1"),
        _candidate("t2", "u1"),
        _candidate("t3", "u2"),
    ])

    assert delivered == 3
    assert len(source.preference_calls) == 1
    assert sorted(source.preference_calls[0]) == ["u1", "u2"]
    assert len(source.config_calls) == 1
    assert sorted(alert.target.id for _, _, alert in notifier.sent) == ["t1", "t2", "t3"]
    providers = {alert.target.id: provider for provider, _, alert in notifier.sent}
    assert providers["t3"] == NotificationProvider.TELEGRAM


@pytest.mark.asyncio
async def test_disabled_or_unconfigured_owners_are_skipped() -> None:
    source = FakeSource()
    source.enable_alerts("u1")
    source.enable_alerts("u2")
    source.preferences["u2"] = replace(source.preferences["u2"], notifications_enabled=False)
    source.enable_alerts("u3")
    del source.configs[("u3", NotificationProvider.SLACK)]
    source.enable_alerts("u4")
    key = ("u4", NotificationProvider.SLACK)
    source.configs[key] = replace(source.configs[key], is_enabled=False)
    notifier = RecordingNotifier()
    dispatcher = AlertDispatcher(source, notifier)

    delivered = await dispatcher.dispatch([
        _candidate("t1", "u1"),
        _candidate("t2", "u2"),
        _candidate("t3", "u3"),
        _candidate("t4", "u4"),
        _candidate("t5", "u5"),
    ])

    assert delivered == 1
    assert [alert.target.id for _, _, alert in notifier.sent] == ["t1"]


@pytest.mark.asyncio
async def test_failed_sends_are_not_counted_or_retried() -> None:
    source = FakeSource()
    source.enable_alerts("u1")
    notifier = RecordingNotifier(outcome=False)

    delivered = await AlertDispatcher(source, notifier).dispatch([_candidate("t1", "u1")])

    assert delivered == 0
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_preference_lookup_failure_drops_batch() -> None:
    class BrokenSource(FakeSource):
        async def get_notification_preferences(self, user_ids):
            raise ConnectionError("db down")

    notifier = RecordingNotifier()
    delivered = await AlertDispatcher(BrokenSource(), notifier).dispatch([_candidate("t1", "u1")])

    assert delivered == 0
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_no_candidates_means_no_lookups() -> None:
    source = FakeSource()

    assert await AlertDispatcher(source, RecordingNotifier()).dispatch([]) == 0
    assert source.preference_calls == []
