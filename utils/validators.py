"""
============================================================================
ICU HEALTH MONITOR - VALIDATORS UTILITY
============================================================================
Validation and parsing for target URLs and the comma-separated
configuration values the probe executor is driven by.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

from typing import FrozenSet, List, Tuple
from urllib.parse import urlparse
import validators as external_validators

from config.constants import HTTPMethods
from exceptions.validation import (
    InvalidMethodOrderError,
    InvalidStatusCodeSpecError,
    InvalidURLError,
)


# ============================================================================
# URL VALIDATORS
# ============================================================================

class URLValidator:
    """
    URL validation for targets registered through the store adapter.
    """

    ALLOWED_SCHEMES = ("http", "https")

    @staticmethod
    def is_valid_url(url: str) -> bool:
        """
        Check if URL is a well-formed http(s) URL.

        Args:
            url: URL to validate

        Returns:
            True if valid, False otherwise
        """
        if not url or not isinstance(url, str):
            return False

        if urlparse(url).scheme.lower() not in URLValidator.ALLOWED_SCHEMES:
            return False

        return external_validators.url(url) is True

    @staticmethod
    def validate(url: str) -> str:
        """
        Validate and normalize a URL, raising on failure.

        Raises:
            InvalidURLError: If the URL is malformed or not http(s)
        """
        url = (url or "").strip()
        if not url:
            raise InvalidURLError("URL is required", url=url, reason="empty")

        if urlparse(url).scheme.lower() not in URLValidator.ALLOWED_SCHEMES:
            raise InvalidURLError(
                "URL must start with http:// or https://", url=url, reason="no_scheme"
            )

        if not URLValidator.is_valid_url(url):
            raise InvalidURLError(url=url, reason="malformed")

        return url


# ============================================================================
# CONFIGURATION VALUE PARSERS
# ============================================================================

class StatusCodeSpecParser:
    """
    Parses accepted-status specs such as ``"200-299,401,403"`` into a
    set of explicit codes and a tuple of inclusive ranges.
    """

    MIN_CODE = 100
    MAX_CODE = 599

    @classmethod
    def parse(cls, spec: str) -> Tuple[FrozenSet[int], Tuple[Tuple[int, int], ...]]:
        """
        Parse a status code spec.

        Args:
            spec: Comma-separated codes and ``low-high`` ranges

        Returns:
            (explicit codes, inclusive ranges)

        Raises:
            InvalidStatusCodeSpecError: On an empty spec or bad token
        """
        codes = set()
        ranges: List[Tuple[int, int]] = []

        tokens = [t.strip() for t in (spec or "").split(",") if t.strip()]
        if not tokens:
            raise InvalidStatusCodeSpecError("Status code spec is empty", spec=spec)

        for token in tokens:
            if "-" in token:
                low_str, _, high_str = token.partition("-")
                low = cls._parse_code(low_str, spec, token)
                high = cls._parse_code(high_str, spec, token)
                if low > high:
                    raise InvalidStatusCodeSpecError(
                        f"Range {token!r} has its bounds reversed", spec=spec, token=token
                    )
                ranges.append((low, high))
            else:
                codes.add(cls._parse_code(token, spec, token))

        return frozenset(codes), tuple(ranges)

    @classmethod
    def parse_codes(cls, spec: str) -> FrozenSet[int]:
        """Parse a plain comma-separated list of codes (no ranges)."""
        codes, ranges = cls.parse(spec)
        if ranges:
            raise InvalidStatusCodeSpecError(
                "Ranges are not allowed in this list", spec=spec
            )
        return codes

    @classmethod
    def _parse_code(cls, raw: str, spec: str, token: str) -> int:
        try:
            code = int(raw.strip())
        except ValueError:
            raise InvalidStatusCodeSpecError(
                f"{token!r} is not a status code or range", spec=spec, token=token
            )
        if not cls.MIN_CODE <= code <= cls.MAX_CODE:
            raise InvalidStatusCodeSpecError(
                f"{code} is outside {cls.MIN_CODE}-{cls.MAX_CODE}", spec=spec, token=token
            )
        return code


class MethodOrderParser:
    """Parses an HTTP method priority list such as ``"HEAD,GET"``."""

    @staticmethod
    def parse(order: str) -> Tuple[str, ...]:
        """
        Parse, upper-case, and de-duplicate a method order.

        Raises:
            InvalidMethodOrderError: If empty or naming an unknown method
        """
        supported = {m.value for m in HTTPMethods}
        methods: List[str] = []

        for raw in (order or "").split(","):
            method = raw.strip().upper()
            if not method:
                continue
            if method not in supported:
                raise InvalidMethodOrderError(
                    f"Unsupported HTTP method {method!r}", order=order
                )
            if method not in methods:
                methods.append(method)

        if not methods:
            raise InvalidMethodOrderError("Method order is empty", order=order)

        return tuple(methods)
