"""
Monitoring Exception Classes for ICU Health Monitor

Errors from the change-feed and the notification adapters. Probe
failures are never raised: the probe executor turns them into an
unsuccessful check result.
"""

from __future__ import annotations

from typing import Any, Optional
from exceptions.base import HealthMonitorException


class MonitoringException(HealthMonitorException):
    """
    Base Monitoring Exception

    Parent class for all monitoring-related exceptions.
    """

    default_error_code = 4000
    default_recoverable = True


class ChangeFeedError(MonitoringException):
    """
    Change Feed Error

    Raised when the target change-feed disconnects. The store reacts
    by re-listing active targets from the durable store.
    """

    default_error_code = 4001


class NotificationException(MonitoringException):
    """
    Base Notification Exception

    Raised by channel adapters. The alert dispatcher logs these per
    candidate and moves on.
    """

    default_error_code = 4100

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)

        if provider:
            self.details["provider"] = provider


class NotificationConfigError(NotificationException):
    """
    Notification Config Error

    Raised when a channel config lacks the credentials its provider
    needs (bot token, chat id, webhook url).
    """

    default_error_code = 4101


class NotificationDeliveryError(NotificationException):
    """
    Notification Delivery Error

    Raised when the provider rejects the message or cannot be reached.
    """

    default_error_code = 4102

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, provider=provider, **kwargs)

        if status_code is not None:
            self.details["status_code"] = status_code


class UnknownProviderError(NotificationException):
    """
    Unknown Provider Error

    Raised when no adapter is registered for the requested provider.
    """

    default_error_code = 4103
