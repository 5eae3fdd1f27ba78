"""
Base Exception Classes for ICU Health Monitor

Root of the hierarchy plus the startup failure every component raises
when it cannot reach a usable initial state.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
from datetime import datetime, timezone
import traceback
import sys


class HealthMonitorException(Exception):
    """
    Base Exception Class

    Attributes:
        message: Human-readable error message
        error_code: Numeric code; the thousands digit names the family
            (1 startup, 2 database, 3 validation, 4 monitoring)
        details: Structured context (target id, provider, table, ...)
        cause: The lower-level exception being wrapped, if any
        recoverable: False when the engine cannot keep running
        timestamp: When the exception was created (UTC)
    """

    default_error_code: int = 1000
    default_recoverable: bool = True

    def __init__(
        self,
        message: str = "An error occurred",
        error_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable if recoverable is not None else self.default_recoverable
        self.timestamp = datetime.now(timezone.utc)

        # Traceback of the exception being handled when this one was raised
        exc_type, exc_value, exc_tb = sys.exc_info()
        self.traceback_str = (
            "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
            if exc_type is not None else ""
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form for structured logs; the traceback is kept only for fatal errors."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
            "traceback": self.traceback_str if not self.recoverable else None,
        }

    def log_format(self) -> str:
        """One-line ``Exception | Code | Message | Details | Cause`` summary."""
        parts = [
            f"Exception: {self.__class__.__name__}",
            f"Code: {self.error_code}",
            f"Message: {self.message}",
        ]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.cause:
            parts.append(f"Cause: {self.cause}")
        return " | ".join(parts)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code}, "
            f"details={self.details})"
        )


class InitializationError(HealthMonitorException):
    """
    Initialization Error

    Raised when a component fails to start. For the scheduler this
    means the initial active-target list could not be loaded, which
    leaves it with no valid state to operate on.
    """

    default_error_code = 1200
    default_recoverable = False

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)

        if component:
            self.details["component"] = component
