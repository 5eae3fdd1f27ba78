"""
============================================================================
ICU HEALTH MONITOR - DATABASE MODELS
============================================================================
SQLAlchemy ORM models for the durable store: monitored URLs, their check
results, and the owners' notification settings.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import uuid
from typing import Any, Dict

from sqlalchemy import (
    BigInteger, Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer,
    JSON, String, Text, UniqueConstraint, func
)
from sqlalchemy.orm import declarative_base, relationship

from config.constants import NotificationProvider, TargetStatus
from monitoring.models import ChannelConfig, CheckResult, NotificationPreference, Target
from utils.helpers import TimeHelper


# ============================================================================
# BASE MODEL CONFIGURATION
# ============================================================================

Base = declarative_base()

# SQLite only auto-increments a plain INTEGER primary key
BigIntegerPK = BigInteger().with_variant(Integer, "sqlite")


def _new_id() -> str:
    return str(uuid.uuid4())


def _new_unique_id() -> str:
    return uuid.uuid4().hex


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamps to models.
    """
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=TimeHelper.get_utc_now,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=TimeHelper.get_utc_now,
        onupdate=TimeHelper.get_utc_now,
        server_default=func.now(),
    )


# ============================================================================
# MONITORED URL MODEL
# ============================================================================

class MonitoredUrl(Base, TimestampMixin):
    """
    A registered target and its last known status.
    """
    __tablename__ = "monitored_urls"

    # Primary Key
    id = Column(String(36), primary_key=True, default=_new_id)
    unique_id = Column(String(64), unique=True, nullable=False, default=_new_unique_id)

    # Ownership
    user_id = Column(String(64), nullable=False, index=True)

    # Target
    target_url = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    # Status (written by the scheduler)
    last_status = Column(
        Enum(TargetStatus, name="target_status", native_enum=False),
        nullable=False,
        default=TargetStatus.UNKNOWN,
    )
    last_checked_at = Column(DateTime(timezone=True), nullable=True)
    last_status_change_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    health_checks = relationship(
        "HealthCheck",
        back_populates="monitored_url",
        passive_deletes=True,
    )

    # Indexes
    __table_args__ = (
        Index("idx_monitored_url_active", "is_active"),
        Index("idx_monitored_url_user_active", "user_id", "is_active"),
    )

    def to_target(self) -> Target:
        """Convert to the engine's Target value object."""
        return Target(
            id=self.id,
            url=self.target_url,
            owner_id=self.user_id,
            is_active=bool(self.is_active),
            last_status=TargetStatus(self.last_status or TargetStatus.UNKNOWN),
            last_checked_at=TimeHelper.ensure_utc(self.last_checked_at),
            last_status_change_at=TimeHelper.ensure_utc(self.last_status_change_at),
        )

    def __repr__(self) -> str:
        return f"<MonitoredUrl(id={self.id}, url={self.target_url}, status={self.last_status})>"


# ============================================================================
# HEALTH CHECK MODEL
# ============================================================================

class HealthCheck(Base):
    """
    One persisted probe result.
    """
    __tablename__ = "health_checks"

    # Primary Key
    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)

    # Foreign Keys
    monitored_url_id = Column(
        String(36),
        ForeignKey("monitored_urls.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Check Details
    check_time = Column(DateTime(timezone=True), nullable=False, default=TimeHelper.get_utc_now)
    is_success = Column(Boolean, nullable=False)
    status_code = Column(Integer, nullable=True)
    response_time_ms = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)

    # Relationships
    monitored_url = relationship("MonitoredUrl", back_populates="health_checks")

    # Indexes
    __table_args__ = (
        Index("idx_health_check_url_time", "monitored_url_id", "check_time"),
    )

    def to_result(self) -> CheckResult:
        return CheckResult(
            status_code=self.status_code,
            response_time_ms=self.response_time_ms,
            is_success=bool(self.is_success),
            error=self.error,
            check_time=TimeHelper.ensure_utc(self.check_time),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "monitored_url_id": self.monitored_url_id,
            **self.to_result().to_dict(),
        }


# ============================================================================
# NOTIFICATION SETTINGS MODELS
# ============================================================================

class NotificationPreferenceRow(Base, TimestampMixin):
    """
    Per-owner switch and active provider.
    """
    __tablename__ = "notification_preferences"

    user_id = Column(String(64), primary_key=True)
    notifications_enabled = Column(Boolean, nullable=False, default=False)
    active_provider = Column(
        Enum(NotificationProvider, name="notification_provider", native_enum=False),
        nullable=True,
    )

    def to_preference(self) -> NotificationPreference:
        return NotificationPreference(
            user_id=self.user_id,
            notifications_enabled=bool(self.notifications_enabled),
            active_provider=self.active_provider,
        )


class NotificationChannelConfigRow(Base, TimestampMixin):
    """
    Credentials for one owner/provider pair.
    """
    __tablename__ = "notification_channel_configs"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    provider = Column(
        Enum(NotificationProvider, name="notification_provider", native_enum=False),
        nullable=False,
    )
    is_enabled = Column(Boolean, nullable=False, default=True)
    credentials = Column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_channel_config_user_provider"),
    )

    def to_channel_config(self) -> ChannelConfig:
        return ChannelConfig(
            user_id=self.user_id,
            provider=self.provider,
            is_enabled=bool(self.is_enabled),
            credentials=dict(self.credentials or {}),
        )
