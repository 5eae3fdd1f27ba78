"""
Validation Exception Classes for ICU Health Monitor

Raised while parsing configuration values (status code specs,
method orders) and while validating targets entering the store.
"""

from __future__ import annotations

from typing import Any, Optional
from exceptions.base import HealthMonitorException


class ValidationException(HealthMonitorException):
    """
    Base Validation Exception

    Parent class for all validation-related exceptions.
    """

    default_error_code = 3000
    default_recoverable = True

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize validation exception.

        Args:
            message: Error message
            field: The field that failed validation
            value: The invalid value (sanitized)
            **kwargs: Additional arguments
        """
        super().__init__(message, **kwargs)

        if field:
            self.details["field"] = field

        if value is not None:
            self.details["value"] = self._sanitize_value(value)

    @staticmethod
    def _sanitize_value(value: Any) -> str:
        """Truncate long values for logging."""
        str_value = str(value)

        if len(str_value) > 100:
            str_value = str_value[:100] + "..."

        return str_value


class InvalidURLError(ValidationException):
    """
    Invalid URL Error

    Raised when a target URL is invalid or malformed.
    """

    default_error_code = 3001

    def __init__(
        self,
        message: str = "Invalid URL format",
        url: Optional[str] = None,
        reason: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, field="url", value=url, **kwargs)

        if reason:
            self.details["reason"] = reason


class InvalidStatusCodeSpecError(ValidationException):
    """
    Invalid Status Code Spec Error

    Raised when an accepted-status spec such as ``200-299,401``
    contains a token that is neither a code nor an inclusive range.
    """

    default_error_code = 3002

    def __init__(
        self,
        message: str = "Invalid status code spec",
        spec: Optional[str] = None,
        token: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, field="status_codes", value=spec, **kwargs)

        if token is not None:
            self.details["token"] = token


class InvalidMethodOrderError(ValidationException):
    """
    Invalid Method Order Error

    Raised when the configured HTTP method priority list is empty or
    names an unsupported method.
    """

    default_error_code = 3003

    def __init__(
        self,
        message: str = "Invalid HTTP method order",
        order: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, field="method_order", value=order, **kwargs)
