"""
Configuration Package for ICU Health Monitor

This package contains all configuration-related modules including:
- Settings management with environment variable support (config.settings)
- Constants and enums used throughout the application
"""

from config.constants import (
    TargetStatus,
    NotificationProvider,
    ChangeType,
    HTTPMethods,
    Defaults,
    MessageTemplates
)

__all__ = [
    "TargetStatus",
    "NotificationProvider",
    "ChangeType",
    "HTTPMethods",
    "Defaults",
    "MessageTemplates"
]
