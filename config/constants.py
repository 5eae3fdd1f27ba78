"""
Constants Module for ICU Health Monitor

Contains enumerations, default values, and message templates
shared by the health check engine, the store adapter, and the
notification layer.
"""

from __future__ import annotations

from enum import Enum
from typing import Final


class TargetStatus(str, Enum):
    """
    Target Status Enumeration

    Classified status of a monitored target, derived from its
    most recent check result.
    """

    UP = "UP"
    DOWN = "DOWN"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_success(cls, is_success: bool) -> "TargetStatus":
        """Map a check outcome to a status."""
        return cls.UP if is_success else cls.DOWN

    @classmethod
    def get_emoji(cls, status: "TargetStatus") -> str:
        """Get emoji for status."""
        emojis = {
            cls.UP: "🟢",
            cls.DOWN: "🔴",
            cls.UNKNOWN: "⚪",
        }
        return emojis.get(status, "❓")


class NotificationProvider(str, Enum):
    """
    Notification Provider Enumeration

    External channels an owner can route alerts through.
    """

    TELEGRAM = "telegram"
    SLACK = "slack"
    DISCORD = "discord"
    WEBHOOK = "webhook"


class ChangeType(str, Enum):
    """Kinds of events carried by the target change-feed."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class HTTPMethods(str, Enum):
    """HTTP methods a probe may issue."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    OPTIONS = "OPTIONS"


class Defaults:
    """
    Default Values

    Provides default values for health check and scheduler settings.
    """

    # Probe defaults
    TIMEOUT_MS: Final[int] = 5000
    USER_AGENT: Final[str] = "ICU-Monitor/1.0 (+https://icu.local)"
    ACCEPT: Final[str] = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
    ACCEPT_LANGUAGE: Final[str] = "en-US,en;q=0.9"
    ACCEPT_ENCODING: Final[str] = "gzip, deflate, br"
    ALLOWED_STATUS_CODES: Final[str] = "200-299"
    METHOD_ORDER: Final[str] = "HEAD,GET"
    METHOD_FALLBACK_STATUSES: Final[str] = "405,501"

    # Scheduler defaults
    INTERVAL_MS: Final[int] = 60000
    STARTUP_DELAY_MS: Final[int] = 5000
    HISTORY_SIZE: Final[int] = 10
    DEACTIVATION_THRESHOLD: Final[int] = 3

    # Display defaults
    DATETIME_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"


class MessageTemplates:
    """
    Message Templates for outbound alerts

    Plain text is used so provider-specific markup parsers never
    choke on characters in URLs or error strings.
    """

    TARGET_DOWN: Final[str] = (
        "{emoji} Health check failed for {url}. Status code: {status_code}\n"
        "Error: {error}\n"
        "Response time: {response_time}\n"
        "Checked at: {check_time} UTC"
    )
