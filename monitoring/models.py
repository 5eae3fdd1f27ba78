"""
============================================================================
ICU HEALTH MONITOR - DOMAIN MODELS
============================================================================
Plain value objects passed between the probe executor, the target store,
the scheduler, and the durable-store adapter.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional, Union

from config.constants import ChangeType, NotificationProvider, TargetStatus
from utils.helpers import TimeHelper


# ============================================================================
# CHECK RESULT
# ============================================================================

@dataclass(frozen=True)
class CheckResult:
    """
    Outcome of one probe.

    ``status_code`` is None when no response was obtained (timeout, DNS,
    connect or TLS failure); ``error`` then carries the diagnostic text.
    """

    status_code: Optional[int]
    response_time_ms: Optional[int]
    is_success: bool
    error: Optional[str] = None
    check_time: datetime = field(default_factory=TimeHelper.get_utc_now)

    @property
    def status(self) -> TargetStatus:
        return TargetStatus.from_success(self.is_success)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status_code": self.status_code,
            "response_time_ms": self.response_time_ms,
            "is_success": self.is_success,
            "error": self.error,
            "check_time": self.check_time.isoformat(),
        }


# ============================================================================
# TARGET
# ============================================================================

@dataclass(frozen=True)
class Target:
    """
    A monitored endpoint.

    Instances are immutable; the store swaps in updated copies so a sweep
    snapshot never changes underneath the scheduler.
    """

    id: str
    url: str
    owner_id: str
    is_active: bool = True
    last_status: TargetStatus = TargetStatus.UNKNOWN
    last_checked_at: Optional[datetime] = None
    last_status_change_at: Optional[datetime] = None

    def with_result(self, result: CheckResult) -> "Target":
        """Copy of this target with status fields advanced by *result*."""
        new_status = result.status
        changed_at = self.last_status_change_at
        if new_status != self.last_status:
            changed_at = result.check_time

        return replace(
            self,
            last_status=new_status,
            last_checked_at=result.check_time,
            last_status_change_at=changed_at,
        )

    def deactivated(self) -> "Target":
        return replace(self, is_active=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "owner_id": self.owner_id,
            "is_active": self.is_active,
            "last_status": self.last_status.value,
            "last_checked_at": self.last_checked_at.isoformat() if self.last_checked_at else None,
            "last_status_change_at": (
                self.last_status_change_at.isoformat() if self.last_status_change_at else None
            ),
        }


# ============================================================================
# CHANGE FEED EVENT
# ============================================================================

@dataclass(frozen=True)
class TargetChange:
    """
    One insert/update/delete event from the durable store.

    Insert and update events carry the full target; delete events may
    carry only the id.
    """

    type: ChangeType
    target: Optional[Target] = None
    target_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.target is None and self.target_id is None:
            raise ValueError("TargetChange needs a target or a target_id")
        if self.type != ChangeType.DELETE and self.target is None:
            raise ValueError(f"{self.type.value} events must carry the target")

    @property
    def id(self) -> str:
        return self.target.id if self.target is not None else self.target_id

    @classmethod
    def insert(cls, target: Target) -> "TargetChange":
        return cls(type=ChangeType.INSERT, target=target)

    @classmethod
    def update(cls, target: Target) -> "TargetChange":
        return cls(type=ChangeType.UPDATE, target=target)

    @classmethod
    def delete(cls, target: Union[Target, str]) -> "TargetChange":
        if isinstance(target, Target):
            return cls(type=ChangeType.DELETE, target=target)
        return cls(type=ChangeType.DELETE, target_id=target)


# ============================================================================
# NOTIFICATION SETTINGS (read-only)
# ============================================================================

@dataclass(frozen=True)
class NotificationPreference:
    """Whether and through which provider an owner wants alerts."""

    user_id: str
    notifications_enabled: bool = False
    active_provider: Optional[NotificationProvider] = None


@dataclass(frozen=True)
class ChannelConfig:
    """Credentials for one owner/provider pair."""

    user_id: str
    provider: NotificationProvider
    is_enabled: bool = True
    credentials: Dict[str, Any] = field(default_factory=dict)
