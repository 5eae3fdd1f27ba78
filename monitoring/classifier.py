"""
Status classification for probe results.

A status is successful when it is one of the explicit accepted codes or
falls inside one of the inclusive accepted ranges. No status (a transport
failure) is never successful.
"""

from typing import FrozenSet, Iterable, Optional, Tuple

from config.constants import Defaults
from utils.validators import StatusCodeSpecParser


class StatusClassifier:
    """Pure success/failure decision over HTTP status codes."""

    __slots__ = ("codes", "ranges")

    def __init__(
        self,
        codes: Iterable[int] = (),
        ranges: Iterable[Tuple[int, int]] = (),
    ) -> None:
        self.codes: FrozenSet[int] = frozenset(codes)
        self.ranges: Tuple[Tuple[int, int], ...] = tuple(ranges)

    @classmethod
    def from_spec(cls, spec: str = Defaults.ALLOWED_STATUS_CODES) -> "StatusClassifier":
        """Build from a spec such as ``"200-299,401,403"``."""
        codes, ranges = StatusCodeSpecParser.parse(spec)
        return cls(codes, ranges)

    def classify(self, status_code: Optional[int]) -> bool:
        if status_code is None:
            return False
        if status_code in self.codes:
            return True
        return any(low <= status_code <= high for low, high in self.ranges)

    __call__ = classify

    def __repr__(self) -> str:
        parts = [str(c) for c in sorted(self.codes)]
        parts.extend(f"{low}-{high}" for low, high in self.ranges)
        return f"StatusClassifier({','.join(parts)!r})"
