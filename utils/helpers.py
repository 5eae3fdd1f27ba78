"""
============================================================================
ICU HEALTH MONITOR - HELPERS UTILITY
============================================================================
Time and string helpers shared by the engine, the store adapter, and
the alert formatter.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import time
from datetime import datetime, timezone
from typing import Optional


# ============================================================================
# TIME UTILITIES
# ============================================================================

class TimeHelper:
    """
    Time and date manipulation utilities.
    """

    @staticmethod
    def get_utc_now() -> datetime:
        """Get current timezone-aware UTC datetime."""
        return datetime.now(timezone.utc)

    @staticmethod
    def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
        """
        Attach UTC to naive datetimes.

        SQLite hands back naive values even for timezone-aware columns.

        Args:
            dt: Datetime to normalize

        Returns:
            Aware datetime in UTC, or None
        """
        if dt is None:
            return None
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    @staticmethod
    def format_datetime(dt: datetime, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
        """
        Format datetime to string.

        Args:
            dt: Datetime to format
            fmt: Format string

        Returns:
            Formatted string
        """
        return dt.strftime(fmt)

    @staticmethod
    def monotonic_ms() -> float:
        """Monotonic clock reading in milliseconds."""
        return time.perf_counter() * 1000.0

    @staticmethod
    def elapsed_ms(start_ms: float) -> int:
        """Whole milliseconds elapsed since a ``monotonic_ms`` reading."""
        return max(0, int(round(TimeHelper.monotonic_ms() - start_ms)))


# ============================================================================
# STRING UTILITIES
# ============================================================================

class StringHelper:
    """
    String manipulation utilities.
    """

    @staticmethod
    def truncate(text: str, max_length: int = 100, suffix: str = "...") -> str:
        """
        Truncate string to maximum length.

        Args:
            text: Text to truncate
            max_length: Maximum length
            suffix: Suffix to add if truncated

        Returns:
            Truncated string
        """
        if len(text) <= max_length:
            return text

        return text[:max_length - len(suffix)] + suffix

    @staticmethod
    def format_response_time(response_time_ms: Optional[int]) -> str:
        """Render a response time for human-facing messages."""
        if response_time_ms is None:
            return "n/a"
        if response_time_ms >= 1000:
            return f"{response_time_ms / 1000:.2f}s"
        return f"{response_time_ms}ms"
