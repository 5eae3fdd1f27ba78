"""
Exceptions Package for ICU Health Monitor

Provides the exception hierarchy used across the engine, the store
adapter, and the notification layer.
"""

from exceptions.base import (
    HealthMonitorException,
    InitializationError
)

from exceptions.database import (
    DatabaseException,
    DatabaseConnectionError,
    DatabaseQueryError,
    DatabaseNotFoundError
)

from exceptions.validation import (
    ValidationException,
    InvalidURLError,
    InvalidStatusCodeSpecError,
    InvalidMethodOrderError
)

from exceptions.monitoring import (
    MonitoringException,
    ChangeFeedError,
    NotificationException,
    NotificationConfigError,
    NotificationDeliveryError,
    UnknownProviderError
)

__all__ = [
    # Base exceptions
    "HealthMonitorException",
    "InitializationError",

    # Database exceptions
    "DatabaseException",
    "DatabaseConnectionError",
    "DatabaseQueryError",
    "DatabaseNotFoundError",

    # Validation exceptions
    "ValidationException",
    "InvalidURLError",
    "InvalidStatusCodeSpecError",
    "InvalidMethodOrderError",

    # Monitoring exceptions
    "MonitoringException",
    "ChangeFeedError",
    "NotificationException",
    "NotificationConfigError",
    "NotificationDeliveryError",
    "UnknownProviderError"
]
