"""
============================================================================
ICU HEALTH MONITOR - MONITORING PACKAGE
============================================================================
The health check engine:
    • StatusClassifier  — accepted status codes and ranges
    • ProbeExecutor     — one reachability check with method fallback,
                          IPv4 retry and a shared deadline
    • TargetStore       — cached targets, history rings, change-feed writer
    • MonitorScheduler  — periodic sweeps, transitions, 3-strikes rule
    • AlertDispatcher   — batched owner lookups, one alert per transition
    • NotifierDispatch  — telegram / slack / discord / webhook adapters
    • StatusServer      — aiohttp read-only view of the live cache

File layout
-----------
monitoring/
├── __init__.py          ← this file
├── models.py            ← Target, CheckResult, TargetChange, notification settings
├── classifier.py        ← StatusClassifier
├── monitor.py           ← ProbeExecutor
├── store.py             ← HistoryRing, ChangeFeed, TargetStore
├── scheduler.py         ← MonitorScheduler, SweepReport
├── alerts.py            ← AlertDispatcher
├── notifiers.py         ← AlertMessage, channel adapters, NotifierDispatch
└── status_server.py     ← StatusServer

============================================================================
"""

from monitoring.models import (
    CheckResult,
    Target,
    TargetChange,
    NotificationPreference,
    ChannelConfig,
)
from monitoring.classifier import StatusClassifier
from monitoring.monitor import ProbeExecutor, describe_error
from monitoring.store import HistoryRing, ChangeFeed, TargetStore
from monitoring.notifiers import (
    AlertMessage,
    BaseNotifier,
    TelegramNotifier,
    SlackNotifier,
    DiscordNotifier,
    WebhookNotifier,
    NotifierDispatch,
)
from monitoring.alerts import AlertDispatcher
from monitoring.scheduler import MonitorScheduler, SweepReport
from monitoring.status_server import StatusServer

__all__ = [
    # Models
    "CheckResult",
    "Target",
    "TargetChange",
    "NotificationPreference",
    "ChannelConfig",

    # Probe
    "StatusClassifier",
    "ProbeExecutor",
    "describe_error",

    # Store
    "HistoryRing",
    "ChangeFeed",
    "TargetStore",

    # Notifications
    "AlertMessage",
    "BaseNotifier",
    "TelegramNotifier",
    "SlackNotifier",
    "DiscordNotifier",
    "WebhookNotifier",
    "NotifierDispatch",
    "AlertDispatcher",

    # Scheduler
    "MonitorScheduler",
    "SweepReport",

    # Status server
    "StatusServer",
]
