"""
Database Package for ICU Health Monitor

Provides database connectivity, models, and the monitoring repository
using SQLAlchemy with async support.
"""

from database.models import (
    Base,
    MonitoredUrl,
    HealthCheck,
    NotificationPreferenceRow,
    NotificationChannelConfigRow
)

from database.manager import (
    DatabaseManager,
    MonitoringRepository
)

__all__ = [
    # Models
    "Base",
    "MonitoredUrl",
    "HealthCheck",
    "NotificationPreferenceRow",
    "NotificationChannelConfigRow",

    # Manager / repository
    "DatabaseManager",
    "MonitoringRepository"
]
