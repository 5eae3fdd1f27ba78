"""
Settings Module for ICU Health Monitor

Configuration management using Pydantic Settings.
Supports environment variables, .env files, and runtime configuration.
Includes validation, type checking, and sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple
from enum import Enum

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from config.constants import Defaults
from exceptions.validation import ValidationException
from utils.validators import MethodOrderParser, StatusCodeSpecParser


class Environment(str, Enum):
    """Application environment enumeration."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging level enumeration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class BaseSettingsConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True
    )


class HealthCheckSettings(BaseSettingsConfig):
    """
    Probe Executor Configuration Settings

    Timeout, request headers, status classification policy, HTTP
    method priority and fallback, and network path preference.
    """

    model_config = SettingsConfigDict(
        env_prefix="HEALTHCHECK_",
        env_file=".env",
        extra="ignore"
    )

    timeout_ms: int = Field(
        default=Defaults.TIMEOUT_MS,
        ge=100,
        le=120000,
        description="Overall probe deadline in milliseconds, shared by all attempts"
    )
    debug: Optional[bool] = Field(
        default=None,
        description="Verbose probe logging (unset: on outside production)"
    )

    # Request headers
    user_agent: str = Field(
        default=Defaults.USER_AGENT,
        min_length=1,
        description="User-Agent header sent with every probe"
    )
    accept: str = Field(
        default=Defaults.ACCEPT,
        description="Accept header"
    )
    accept_language: str = Field(
        default=Defaults.ACCEPT_LANGUAGE,
        description="Accept-Language header"
    )
    accept_encoding: str = Field(
        default=Defaults.ACCEPT_ENCODING,
        description="Accept-Encoding header"
    )

    # Classification and method policy
    allowed_status_codes: str = Field(
        default=Defaults.ALLOWED_STATUS_CODES,
        description="Accepted status codes, e.g. '200-299,401,403'"
    )
    method_order: str = Field(
        default=Defaults.METHOD_ORDER,
        description="HTTP methods in priority order, e.g. 'HEAD,GET'"
    )
    method_fallback_statuses: str = Field(
        default=Defaults.METHOD_FALLBACK_STATUSES,
        description="Statuses meaning 'method not supported', e.g. '405,501'"
    )

    # Network
    use_ipv4_first: bool = Field(
        default=False,
        description="Try the IPv4-forced network path before the default one"
    )
    verify_ssl: bool = Field(
        default=True,
        description="Verify TLS certificates"
    )
    max_redirects: int = Field(
        default=10,
        ge=0,
        le=50,
        description="Maximum redirects followed per request"
    )

    # Concurrency
    max_concurrent_probes: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum simultaneous probes within one sweep"
    )

    @field_validator("allowed_status_codes")
    @classmethod
    def validate_allowed_status_codes(cls, v: str) -> str:
        """Reject malformed status specs at startup."""
        try:
            StatusCodeSpecParser.parse(v)
        except ValidationException as e:
            raise ValueError(e.message)
        return v

    @field_validator("method_fallback_statuses")
    @classmethod
    def validate_fallback_statuses(cls, v: str) -> str:
        """Fallback statuses are explicit codes only."""
        try:
            StatusCodeSpecParser.parse_codes(v)
        except ValidationException as e:
            raise ValueError(e.message)
        return v

    @field_validator("method_order")
    @classmethod
    def validate_method_order(cls, v: str) -> str:
        """Reject empty or unknown method lists."""
        try:
            MethodOrderParser.parse(v)
        except ValidationException as e:
            raise ValueError(e.message)
        return v

    @property
    def timeout_seconds(self) -> float:
        """Probe deadline in seconds."""
        return self.timeout_ms / 1000.0

    @property
    def methods(self) -> Tuple[str, ...]:
        """Parsed method priority order."""
        return MethodOrderParser.parse(self.method_order)

    @property
    def status_policy(self) -> Tuple[FrozenSet[int], Tuple[Tuple[int, int], ...]]:
        """Parsed accepted-status codes and ranges."""
        return StatusCodeSpecParser.parse(self.allowed_status_codes)

    @property
    def fallback_statuses(self) -> FrozenSet[int]:
        """Parsed 'method not supported' statuses."""
        return StatusCodeSpecParser.parse_codes(self.method_fallback_statuses)

    @property
    def request_headers(self) -> Dict[str, str]:
        """Header set built for every probe attempt."""
        return {
            "User-Agent": self.user_agent,
            "Accept": self.accept,
            "Accept-Language": self.accept_language,
            "Accept-Encoding": self.accept_encoding,
        }


class SchedulerSettings(BaseSettingsConfig):
    """
    Monitor Scheduler Configuration Settings

    Sweep cadence, history bound, and the auto-deactivation rule.
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        env_file=".env",
        extra="ignore"
    )

    interval_ms: int = Field(
        default=Defaults.INTERVAL_MS,
        ge=1000,
        le=86400000,
        description="Time between sweep starts in milliseconds"
    )
    startup_delay_ms: int = Field(
        default=Defaults.STARTUP_DELAY_MS,
        ge=0,
        le=600000,
        description="Grace delay before the first sweep"
    )
    history_size: int = Field(
        default=Defaults.HISTORY_SIZE,
        ge=1,
        le=1000,
        description="Check results kept per target, newest first"
    )
    deactivation_threshold: int = Field(
        default=Defaults.DEACTIVATION_THRESHOLD,
        ge=1,
        le=100,
        description="Consecutive failures that auto-deactivate a target"
    )
    resync_delay_seconds: float = Field(
        default=5.0,
        ge=0.0,
        le=300.0,
        description="Pause before re-subscribing after a change-feed disconnect"
    )

    @model_validator(mode="after")
    def validate_history_bound(self) -> "SchedulerSettings":
        """The ring must be able to hold a full strike window."""
        if self.history_size < self.deactivation_threshold:
            raise ValueError("history_size cannot be smaller than deactivation_threshold")
        return self

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0

    @property
    def startup_delay_seconds(self) -> float:
        return self.startup_delay_ms / 1000.0


class NotificationSettings(BaseSettingsConfig):
    """
    Notification Configuration Settings

    HTTP behaviour of the outbound channel adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        env_file=".env",
        extra="ignore"
    )

    timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=120.0,
        description="Timeout for one outbound notification request"
    )
    telegram_api_base: str = Field(
        default="https://api.telegram.org",
        description="Telegram Bot API base URL"
    )


class DatabaseSettings(BaseSettingsConfig):
    """
    Database Configuration Settings

    Connection for the SQLAlchemy durable-store adapter.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite+aiosqlite:///data/icu_monitor.db",
        description="SQLAlchemy async database URL"
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL queries (debug mode)"
    )
    pool_pre_ping: bool = Field(
        default=True,
        description="Enable connection health check before use"
    )
    create_tables: bool = Field(
        default=True,
        description="Create missing tables on startup"
    )

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class LoggingSettings(BaseSettingsConfig):
    """
    Logging Configuration Settings

    Console and file sinks for loguru.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore"
    )

    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Minimum logging level"
    )

    # Console logging
    console_enabled: bool = Field(
        default=True,
        description="Enable console logging"
    )
    console_colored: bool = Field(
        default=True,
        description="Enable colored console output"
    )

    # File logging
    file_enabled: bool = Field(
        default=False,
        description="Enable file logging"
    )
    file_path: Path = Field(
        default=Path("logs/icu_monitor.log"),
        description="Log file path"
    )
    file_rotation: str = Field(
        default="10 MB",
        description="Log rotation size (e.g., '10 MB', '1 day')"
    )
    file_retention: str = Field(
        default="30 days",
        description="Log retention period"
    )

    # Error logging (separate file for errors)
    error_file_enabled: bool = Field(
        default=False,
        description="Enable separate error log file"
    )
    error_file_path: Path = Field(
        default=Path("logs/errors.log"),
        description="Error log file path"
    )

    # JSON logging
    json_enabled: bool = Field(
        default=False,
        description="Serialize file log records as JSON"
    )


class StatusServerSettings(BaseSettingsConfig):
    """
    Status Server Configuration Settings

    Read-only HTTP surface exposing live status and history.
    """

    model_config = SettingsConfigDict(
        env_prefix="STATUS_SERVER_",
        env_file=".env",
        extra="ignore"
    )

    enabled: bool = Field(
        default=True,
        description="Serve live status over HTTP"
    )
    host: str = Field(
        default="0.0.0.0",
        description="Bind address"
    )
    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Bind port"
    )


class Settings(BaseSettingsConfig):
    """
    Main Settings Class

    Aggregates all settings sections and provides the main
    configuration interface for the application.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment"
    )

    # Application info
    app_name: str = Field(
        default="ICU Health Monitor",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )

    # Nested settings
    healthcheck: HealthCheckSettings = Field(
        default_factory=HealthCheckSettings
    )
    scheduler: SchedulerSettings = Field(
        default_factory=SchedulerSettings
    )
    notifications: NotificationSettings = Field(
        default_factory=NotificationSettings
    )
    database: DatabaseSettings = Field(
        default_factory=DatabaseSettings
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings
    )
    status_server: StatusServerSettings = Field(
        default_factory=StatusServerSettings
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING

    @property
    def debug(self) -> bool:
        """Resolved health-check debug toggle."""
        return bool(self.healthcheck.debug)

    @model_validator(mode="after")
    def configure_for_environment(self) -> "Settings":
        """Apply environment-specific configuration."""
        if self.healthcheck.debug is None:
            self.healthcheck.debug = not self.is_production

        if self.is_production:
            self.database.echo = False

        return self

    def to_dict(self, *, exclude_secrets: bool = True) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        data = self.model_dump(mode="json")

        if exclude_secrets:
            def remove_secrets(obj: Any) -> Any:
                if isinstance(obj, dict):
                    return {
                        k: remove_secrets(v)
                        for k, v in obj.items()
                        if "password" not in k.lower()
                        and "secret" not in k.lower()
                        and "token" not in k.lower()
                    }
                elif isinstance(obj, list):
                    return [remove_secrets(item) for item in obj]
                return obj

            data = remove_secrets(data)

        return data


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure a single settings instance
    is used throughout the application lifecycle.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
