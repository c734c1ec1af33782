"""
============================================================================
UPTIME MONITOR - DATABASE MANAGER
============================================================================
Engine and session management plus the repositories the monitoring
engine reads and writes through.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
from typing import Optional, AsyncGenerator, Dict, Any, List, Sequence
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    AsyncEngine,
    async_sessionmaker
)
from sqlalchemy import event, text, select, update, func, case, literal
from sqlalchemy.engine import make_url
from sqlalchemy.pool import NullPool
from sqlalchemy.exc import SQLAlchemyError

from database.models import (
    Base,
    User,
    Monitor,
    MonitorStatus,
    Incident,
    IncidentNotification,
    IncidentStatus,
    IncidentType,
    NotificationChannel,
    NotificationEvent,
)
from config.settings import Settings
from exceptions.database import DatabaseConnectionError, DatabaseQueryError
from utils.helpers import TimeHelper
from utils.logger import get_logger, log_execution_time


logger = get_logger("Database")


OPEN_STATUSES = (IncidentStatus.OPEN, IncidentStatus.ACKNOWLEDGED)


# ============================================================================
# DATABASE MANAGER CLASS
# ============================================================================

class DatabaseManager:
    """
    Database manager handling engine creation, session scopes and
    schema creation.
    """

    def __init__(self, settings: Settings, database_url: Optional[str] = None):
        """
        Initialize database manager.

        Args:
            settings: Application settings instance
            database_url: Override for the URL built from settings
        """
        self.settings = settings
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self._is_initialized = False
        self._lock = asyncio.Lock()

        db_settings = settings.database
        self.database_url = database_url or db_settings.url
        self.echo = db_settings.echo
        self.pool_size = db_settings.pool_size
        self.max_overflow = db_settings.max_overflow
        self.pool_timeout = db_settings.pool_timeout
        self.pool_recycle = db_settings.pool_recycle
        self.pool_pre_ping = db_settings.pool_pre_ping

        logger.info(f"DatabaseManager initialized with URL: {self._mask_password(self.database_url)}")

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

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

    def _engine_kwargs(self) -> Dict[str, Any]:
        """Use NullPool for SQLite, a sized pool for everything else."""
        kwargs: Dict[str, Any] = {"echo": self.echo}

        if self.is_sqlite:
            kwargs["poolclass"] = NullPool
        else:
            kwargs.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_timeout=self.pool_timeout,
                pool_recycle=self.pool_recycle,
                pool_pre_ping=self.pool_pre_ping,
            )

        return kwargs

    def _ensure_sqlite_directory(self) -> None:
        database = make_url(self.database_url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)

    async def initialize(self) -> None:
        """
        Initialize database engine and session factory.
        Creates all tables if they don't exist.
        """
        async with self._lock:
            if self._is_initialized:
                logger.warning("Database already initialized")
                return

            try:
                if self.is_sqlite:
                    self._ensure_sqlite_directory()

                self.engine = create_async_engine(self.database_url, **self._engine_kwargs())

                self._register_event_listeners()

                self.session_factory = async_sessionmaker(
                    self.engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                    autoflush=False,
                )

                await self.create_tables()

                self._is_initialized = True
                logger.info("Database initialized successfully")

            except SQLAlchemyError as e:
                logger.opt(exception=True).error(f"Failed to initialize database: {e}")
                raise DatabaseConnectionError(
                    message=f"Failed to initialize database: {e}",
                    cause=e
                ) from e

    def _register_event_listeners(self) -> None:
        """Register SQLAlchemy event listeners for connection management."""
        is_sqlite = self.is_sqlite

        @event.listens_for(self.engine.sync_engine, "connect")
        def receive_connect(dbapi_conn, connection_record):
            """Handle new database connections."""
            if is_sqlite:
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()
            logger.debug("New database connection established")

    @log_execution_time
    async def create_tables(self) -> None:
        """
        Create all database tables.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    async def drop_tables(self) -> None:
        """
        Drop all database tables.
        WARNING: This will delete all data!
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.warning("All database tables dropped")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Provide a transactional scope for database operations.

        SQLAlchemy errors are rolled back and re-raised as
        DatabaseQueryError.

        Yields:
            AsyncSession instance

        Example:
            async with db_manager.session() as session:
                monitor = await session.get(Monitor, monitor_id)
        """
        if not self._is_initialized:
            await self.initialize()

        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Session error: {e}")
            raise DatabaseQueryError(message=f"Database operation failed: {e}", cause=e) from e
        except BaseException:
            await session.rollback()
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
        except DatabaseQueryError as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    async def close(self) -> None:
        """
        Close database connections and cleanup resources.
        """
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")
            self._is_initialized = False


# ============================================================================
# DATABASE REPOSITORY BASE CLASS
# ============================================================================

class BaseRepository:
    """
    Base repository class for database operations.
    Storage errors propagate to the caller.
    """

    model_class = None

    def __init__(self, db_manager: DatabaseManager):
        """
        Initialize repository.

        Args:
            db_manager: DatabaseManager instance
        """
        self.db = db_manager
        self.logger = get_logger(self.__class__.__name__)

    async def get_by_id(self, record_id: int):
        """
        Get record by ID.

        Returns:
            Model instance or None
        """
        async with self.db.session() as session:
            return await session.get(self.model_class, record_id)

    async def create(self, model_instance):
        """
        Create new record.

        Args:
            model_instance: Model instance to create

        Returns:
            Created model instance
        """
        async with self.db.session() as session:
            session.add(model_instance)
            await session.flush()
            self.logger.debug(
                f"Created {model_instance.__class__.__name__} #{model_instance.id}"
            )
        return model_instance

    async def count(self) -> int:
        """Count total records."""
        async with self.db.session() as session:
            result = await session.execute(select(func.count(self.model_class.id)))
            return result.scalar() or 0


# ============================================================================
# USER REPOSITORY
# ============================================================================

class UserRepository(BaseRepository):
    """Repository for User model operations."""

    model_class = User

    async def get_by_email(self, email: str) -> Optional[User]:
        async with self.db.session() as session:
            result = await session.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()


# ============================================================================
# MONITOR REPOSITORY
# ============================================================================

class MonitorRepository(BaseRepository):
    """Repository for Monitor model operations."""

    model_class = Monitor

    async def list_active_monitors(self) -> Sequence[Monitor]:
        """All monitors with is_active set, freshly read, in id order."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Monitor)
                .where(Monitor.is_active.is_(True))
                .order_by(Monitor.id.asc())
            )
            return result.scalars().all()

    async def list_for_user(self, user_id: int) -> Sequence[Monitor]:
        async with self.db.session() as session:
            result = await session.execute(
                select(Monitor)
                .where(Monitor.user_id == user_id)
                .order_by(Monitor.id.asc())
            )
            return result.scalars().all()

    async def save_check_state(self, monitor: Monitor) -> bool:
        """
        Persist the check-owned columns of a monitor.

        Only status, counters, uptime and last-check fields are written.
        Configuration columns edited concurrently are left untouched. A
        paused monitor keeps its stored status while the counters and
        last-check fields still record the check.

        Returns:
            True if a row was updated, False if the monitor is gone
        """
        async with self.db.session() as session:
            result = await session.execute(
                update(Monitor)
                .where(Monitor.id == monitor.id)
                .values(
                    status=case(
                        (
                            Monitor.is_active.is_(True),
                            literal(monitor.status, Monitor.__table__.c.status.type),
                        ),
                        else_=Monitor.status,
                    ),
                    consecutive_failures=monitor.consecutive_failures,
                    total_checks=monitor.total_checks,
                    successful_checks=monitor.successful_checks,
                    failed_checks=monitor.failed_checks,
                    uptime_percentage=monitor.uptime_percentage,
                    last_checked=monitor.last_checked,
                    last_response_time=monitor.last_response_time,
                    updated_at=TimeHelper.utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    async def set_active(self, monitor_id: int, is_active: bool) -> bool:
        """
        Pause or resume a monitor.

        Pausing sets the status to paused, resuming sets it back to
        unknown until the next check.

        Returns:
            True if the flag changed, False if the monitor is gone or
            already in that state
        """
        status = MonitorStatus.UNKNOWN if is_active else MonitorStatus.PAUSED
        async with self.db.session() as session:
            result = await session.execute(
                update(Monitor)
                .where(Monitor.id == monitor_id, Monitor.is_active.is_not(is_active))
                .values(
                    is_active=is_active,
                    status=status,
                    updated_at=TimeHelper.utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1


# ============================================================================
# INCIDENT REPOSITORY
# ============================================================================

class IncidentRepository(BaseRepository):
    """Repository for Incident model and its notification audit trail."""

    model_class = Incident

    async def find_open_incidents(
        self,
        monitor_id: int,
        incident_type: Optional[IncidentType] = None
    ) -> List[Incident]:
        """Open or acknowledged incidents of a monitor, oldest first."""
        async with self.db.session() as session:
            query = select(Incident).where(
                Incident.monitor_id == monitor_id,
                Incident.status.in_(OPEN_STATUSES)
            )
            if incident_type is not None:
                query = query.where(Incident.type == incident_type)

            result = await session.execute(
                query.order_by(Incident.start_time.asc(), Incident.id.asc())
            )
            return list(result.scalars().all())

    async def find_open_incident(
        self,
        monitor_id: int,
        incident_type: Optional[IncidentType] = None
    ) -> Optional[Incident]:
        """The open or acknowledged incident of a monitor, if any."""
        incidents = await self.find_open_incidents(monitor_id, incident_type)
        return incidents[0] if incidents else None

    async def list_for_monitor(self, monitor_id: int) -> List[Incident]:
        async with self.db.session() as session:
            result = await session.execute(
                select(Incident)
                .where(Incident.monitor_id == monitor_id)
                .order_by(Incident.start_time.desc(), Incident.id.desc())
            )
            return list(result.scalars().all())

    async def save(
        self,
        incident: Incident,
        expected_statuses: Sequence[IncidentStatus] = OPEN_STATUSES
    ) -> bool:
        """
        Persist the lifecycle columns of an incident.

        The row is only written while its stored status is one of
        *expected_statuses*, so a resolved incident is never overwritten.

        Returns:
            True if the row was written, False if its stored status had
            already moved on
        """
        async with self.db.session() as session:
            result = await session.execute(
                update(Incident)
                .where(
                    Incident.id == incident.id,
                    Incident.status.in_(expected_statuses)
                )
                .values(
                    status=incident.status,
                    end_time=incident.end_time,
                    duration=incident.duration,
                    resolved_by=incident.resolved_by,
                    updated_at=TimeHelper.utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
        return result.rowcount == 1

    async def add_notification(
        self,
        incident: Incident,
        channel: NotificationChannel,
        event: NotificationEvent,
        success: bool,
        error: Optional[str] = None,
        sent_at=None,
    ) -> IncidentNotification:
        """
        Append one delivery attempt to the incident's audit trail.

        The row is stored and also appended to ``incident.notifications``.
        """
        notification = IncidentNotification(
            incident_id=incident.id,
            channel=channel,
            event=event,
            success=success,
            error=error,
            sent_at=sent_at or TimeHelper.utc_now(),
        )

        async with self.db.session() as session:
            session.add(notification)
            await session.flush()

        incident.notifications.append(notification)
        return notification


# ============================================================================
# END OF DATABASE MANAGER MODULE
# ============================================================================
