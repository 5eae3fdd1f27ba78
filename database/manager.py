"""
============================================================================
ICU HEALTH MONITOR - DATABASE MANAGER
============================================================================
Async SQLAlchemy engine/session management and the monitoring repository,
the durable-store adapter the health check engine reads from and writes
to.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, event, select, text, update
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)

from config.constants import NotificationProvider
from config.settings import DatabaseSettings
from database.models import (
    Base,
    HealthCheck,
    MonitoredUrl,
    NotificationChannelConfigRow,
    NotificationPreferenceRow
)
from exceptions.database import (
    DatabaseConnectionError,
    DatabaseNotFoundError,
    DatabaseQueryError
)
from monitoring.models import (
    ChannelConfig,
    CheckResult,
    NotificationPreference,
    Target,
    TargetChange
)
from monitoring.store import ChangeFeed
from utils.logger import get_logger
from utils.validators import URLValidator


logger = get_logger("Database")


# ============================================================================
# DATABASE MANAGER CLASS
# ============================================================================

class DatabaseManager:
    """
    Owns the async engine and hands out transactional sessions.
    """

    def __init__(self, settings: DatabaseSettings):
        """
        Initialize database manager.

        Args:
            settings: Database settings section
        """
        self.settings = settings
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self._is_initialized = False
        self._lock = asyncio.Lock()

        self.database_url = settings.url

        logger.info(f"DatabaseManager initialized with URL: {self._mask_password(self.database_url)}")

    @staticmethod
    def _mask_password(url: str) -> str:
        """
        Mask password in database URL for logging.

        Args:
            url: Database URL

        Returns:
            Masked URL
        """
        if "://" not in url:
            return url

        protocol, rest = url.split("://", 1)
        if "@" not in rest:
            return url

        credentials, host_part = rest.split("@", 1)
        if ":" in credentials:
            user, _ = credentials.split(":", 1)
            return f"{protocol}://{user}:****@{host_part}"

        return url

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    async def initialize(self) -> None:
        """
        Initialize database engine and session factory.
        Creates all tables if they don't exist.

        Raises:
            DatabaseConnectionError: If the engine cannot be created or reached
        """
        async with self._lock:
            if self._is_initialized:
                logger.warning("Database already initialized")
                return

            try:
                if self.settings.is_sqlite:
                    self._ensure_sqlite_directory()

                self.engine = create_async_engine(
                    self.database_url,
                    echo=self.settings.echo,
                    pool_pre_ping=self.settings.pool_pre_ping,
                )

                self._register_event_listeners()

                self.session_factory = async_sessionmaker(
                    self.engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                    autoflush=False,
                )

                if self.settings.create_tables:
                    await self.create_tables()

                self._is_initialized = True
                logger.info("Database initialized successfully")

            except (SQLAlchemyError, OSError) as e:
                logger.error(f"Failed to initialize database: {e}")
                raise DatabaseConnectionError(
                    f"Failed to initialize database: {e}",
                    url=self._mask_password(self.database_url),
                    cause=e,
                ) from e

    def _ensure_sqlite_directory(self) -> None:
        database = make_url(self.database_url).database
        if database and database != ":memory:" and not database.startswith("file:"):
            Path(database).parent.mkdir(parents=True, exist_ok=True)

    def _register_event_listeners(self) -> None:
        """Register SQLAlchemy event listeners for connection management."""

        is_sqlite = self.settings.is_sqlite

        @event.listens_for(self.engine.sync_engine, "connect")
        def receive_connect(dbapi_conn, connection_record):
            """Handle new database connections."""
            if is_sqlite:
                # Health check rows cascade with their target
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()
            logger.debug("New database connection established")

    async def create_tables(self) -> None:
        """
        Create all database tables.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Provide a transactional scope for database operations.

        Yields:
            AsyncSession instance

        Example:
            async with db_manager.session() as session:
                row = await session.get(MonitoredUrl, target_id)
        """
        if not self._is_initialized:
            await self.initialize()

        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Session error: {e}")
            raise
        finally:
            await session.close()

    async def check_connection(self) -> bool:
        """
        Check if database connection is alive.

        Returns:
            True if connection is alive, False otherwise
        """
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    async def close(self) -> None:
        """
        Close database connections and cleanup resources.
        """
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            logger.info("Database connections closed")
        self._is_initialized = False


# ============================================================================
# MONITORING REPOSITORY
# ============================================================================

class MonitoringRepository:
    """
    Durable-store adapter for the health check engine.

    Read side: active targets, recent results, notification settings.
    Write side: check results, status columns, deactivations.

    The registration helpers stand in for the external request layer and
    publish every change to the ChangeFeed so the TargetStore stays warm.
    """

    def __init__(self, db_manager: DatabaseManager, feed: Optional[ChangeFeed] = None):
        """
        Initialize repository.

        Args:
            db_manager: DatabaseManager instance
            feed: Change feed that registration helpers publish to
        """
        self.db = db_manager
        self.feed = feed
        self.logger = get_logger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # ENGINE READS
    # ------------------------------------------------------------------

    async def list_active_targets(self) -> List[Target]:
        """All targets with is_active set."""
        try:
            async with self.db.session() as session:
                result = await session.execute(
                    select(MonitoredUrl)
                    .where(MonitoredUrl.is_active.is_(True))
                    .order_by(MonitoredUrl.created_at)
                )
                return [row.to_target() for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise DatabaseQueryError(
                f"Failed to list active targets: {e}",
                operation="list_active_targets",
                table=MonitoredUrl.__tablename__,
                cause=e,
            ) from e

    async def recent_check_results(self, target_id: str, limit: int = 10) -> List[CheckResult]:
        """Newest-first persisted results for a target."""
        try:
            async with self.db.session() as session:
                result = await session.execute(
                    select(HealthCheck)
                    .where(HealthCheck.monitored_url_id == target_id)
                    .order_by(HealthCheck.check_time.desc(), HealthCheck.id.desc())
                    .limit(limit)
                )
                return [row.to_result() for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise DatabaseQueryError(
                f"Failed to load history for {target_id}: {e}",
                operation="recent_check_results",
                table=HealthCheck.__tablename__,
                cause=e,
            ) from e

    async def get_notification_preferences(
        self,
        user_ids: Iterable[str],
    ) -> Dict[str, NotificationPreference]:
        """Preferences keyed by user id; owners without a row are absent."""
        ids = list(set(user_ids))
        if not ids:
            return {}

        try:
            async with self.db.session() as session:
                result = await session.execute(
                    select(NotificationPreferenceRow)
                    .where(NotificationPreferenceRow.user_id.in_(ids))
                )
                return {row.user_id: row.to_preference() for row in result.scalars().all()}
        except SQLAlchemyError as e:
            raise DatabaseQueryError(
                f"Failed to load notification preferences: {e}",
                operation="get_notification_preferences",
                table=NotificationPreferenceRow.__tablename__,
                cause=e,
            ) from e

    async def get_channel_configs(
        self,
        pairs: Iterable[Tuple[str, NotificationProvider]],
    ) -> Dict[Tuple[str, NotificationProvider], ChannelConfig]:
        """Channel configs keyed by (user id, provider) for the requested pairs."""
        wanted = {(user_id, NotificationProvider(provider)) for user_id, provider in pairs}
        if not wanted:
            return {}

        try:
            async with self.db.session() as session:
                result = await session.execute(
                    select(NotificationChannelConfigRow)
                    .where(NotificationChannelConfigRow.user_id.in_(sorted({u for u, _ in wanted})))
                )
                configs = {}
                for row in result.scalars().all():
                    key = (row.user_id, NotificationProvider(row.provider))
                    if key in wanted:
                        configs[key] = row.to_channel_config()
                return configs
        except SQLAlchemyError as e:
            raise DatabaseQueryError(
                f"Failed to load channel configs: {e}",
                operation="get_channel_configs",
                table=NotificationChannelConfigRow.__tablename__,
                cause=e,
            ) from e

    # ------------------------------------------------------------------
    # ENGINE WRITES
    # ------------------------------------------------------------------

    async def persist_check_result(self, target: Target, result: CheckResult) -> None:
        """Insert a health_checks row and update the target's status columns."""
        try:
            async with self.db.session() as session:
                session.add(HealthCheck(
                    monitored_url_id=target.id,
                    check_time=result.check_time,
                    is_success=result.is_success,
                    status_code=result.status_code,
                    response_time_ms=result.response_time_ms,
                    error=result.error,
                ))
                await session.execute(
                    update(MonitoredUrl)
                    .where(MonitoredUrl.id == target.id)
                    .values(
                        last_status=target.last_status,
                        last_checked_at=target.last_checked_at,
                        last_status_change_at=target.last_status_change_at,
                    )
                )
        except SQLAlchemyError as e:
            raise DatabaseQueryError(
                f"Failed to persist check result for {target.id}: {e}",
                operation="persist_check_result",
                table=HealthCheck.__tablename__,
                cause=e,
            ) from e

    async def persist_deactivation(self, target_id: str) -> None:
        """Clear is_active on a target."""
        try:
            async with self.db.session() as session:
                result = await session.execute(
                    update(MonitoredUrl)
                    .where(MonitoredUrl.id == target_id)
                    .values(is_active=False)
                )
                updated = result.rowcount
        except SQLAlchemyError as e:
            raise DatabaseQueryError(
                f"Failed to persist deactivation of {target_id}: {e}",
                operation="persist_deactivation",
                table=MonitoredUrl.__tablename__,
                cause=e,
            ) from e

        if not updated:
            raise DatabaseNotFoundError(
                f"Target {target_id} does not exist",
                entity=MonitoredUrl.__name__,
                entity_id=target_id,
            )

    # ------------------------------------------------------------------
    # REGISTRATION (external request layer)
    # ------------------------------------------------------------------

    async def get_target(self, target_id: str) -> Optional[Target]:
        async with self.db.session() as session:
            row = await session.get(MonitoredUrl, target_id)
            return row.to_target() if row else None

    async def register_target(self, url: str, user_id: str) -> Target:
        """
        Register a URL for monitoring.

        Raises:
            InvalidURLError: If the URL is not a valid http(s) URL
        """
        url = URLValidator.validate(url)

        async with self.db.session() as session:
            row = MonitoredUrl(target_url=url, user_id=user_id, is_active=True)
            session.add(row)
            await session.flush()
            target = row.to_target()

        self.logger.info(f"Registered target {target.id} ({url}) for user {user_id}")
        self._publish(TargetChange.insert(target))
        return target

    async def set_target_active(self, target_id: str, is_active: bool) -> Target:
        """
        Toggle monitoring for a target.

        Raises:
            DatabaseNotFoundError: If the target does not exist
        """
        async with self.db.session() as session:
            row = await session.get(MonitoredUrl, target_id)
            if row is None:
                raise DatabaseNotFoundError(
                    f"Target {target_id} does not exist",
                    entity=MonitoredUrl.__name__,
                    entity_id=target_id,
                )
            row.is_active = is_active
            await session.flush()
            target = row.to_target()

        self._publish(TargetChange.update(target))
        return target

    async def delete_target(self, target_id: str) -> bool:
        """Delete a target and its check history. Returns False if unknown."""
        async with self.db.session() as session:
            await session.execute(
                delete(HealthCheck).where(HealthCheck.monitored_url_id == target_id)
            )
            result = await session.execute(
                delete(MonitoredUrl).where(MonitoredUrl.id == target_id)
            )
            deleted = bool(result.rowcount)

        if deleted:
            self._publish(TargetChange.delete(target_id))
        return deleted

    async def set_notification_preference(
        self,
        user_id: str,
        notifications_enabled: bool,
        active_provider: Optional[NotificationProvider] = None,
    ) -> NotificationPreference:
        async with self.db.session() as session:
            row = await session.get(NotificationPreferenceRow, user_id)
            if row is None:
                row = NotificationPreferenceRow(user_id=user_id)
                session.add(row)
            row.notifications_enabled = notifications_enabled
            row.active_provider = NotificationProvider(active_provider) if active_provider else None
            await session.flush()
            return row.to_preference()

    async def upsert_channel_config(
        self,
        user_id: str,
        provider: NotificationProvider,
        credentials: Dict[str, Any],
        is_enabled: bool = True,
    ) -> ChannelConfig:
        provider = NotificationProvider(provider)
        async with self.db.session() as session:
            result = await session.execute(
                select(NotificationChannelConfigRow).where(
                    NotificationChannelConfigRow.user_id == user_id,
                    NotificationChannelConfigRow.provider == provider,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = NotificationChannelConfigRow(user_id=user_id, provider=provider)
                session.add(row)
            row.credentials = dict(credentials)
            row.is_enabled = is_enabled
            await session.flush()
            return row.to_channel_config()

    def _publish(self, change: TargetChange) -> None:
        if self.feed is None or self.feed.closed:
            return
        self.feed.publish(change)
