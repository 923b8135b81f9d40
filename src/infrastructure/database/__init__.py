"""
Database Infrastructure
=======================

Manages database connections, session lifecycle, and engine configuration.

Uses SQLAlchemy 2.0 async. Production runs on PostgreSQL through asyncpg;
SQLite (aiosqlite) URLs are accepted for local runs and tests.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from src.config import settings
from src.core import (
    ApplicationException,
    ConflictException,
    RepositoryException,
    ServiceUnavailableException,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    SQLAlchemy 2.0 style using DeclarativeBase.
    """
    pass


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp column.

    Values are normalised to UTC before they are bound and always come back
    tz-aware, including on backends that drop the offset (SQLite).
    """

    impl = DateTime
    cache_ok = True

    def __init__(self) -> None:
        super().__init__(timezone=True)

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# Global engine and session maker
_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """
    Get the database engine.

    Raises:
        ServiceUnavailableException: If engine has not been initialized
    """
    if _engine is None:
        raise ServiceUnavailableException("Database engine not initialized")
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """
    Get the session factory used by units of work.

    Raises:
        ServiceUnavailableException: If the database has not been initialized
    """
    if _session_maker is None:
        raise ServiceUnavailableException("Database not configured")
    return _session_maker


def is_database_ready() -> bool:
    """Readiness flag for health checks."""
    return _session_maker is not None


def init_database(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Initialize the database engine and session maker.

    Should be called during application startup.

    Args:
        database_url: Overrides `settings.database_url`
    """
    global _engine, _session_maker

    # asyncpg expects ssl= instead of sslmode=
    url = (database_url or settings.database_url).replace("sslmode=", "ssl=")

    engine_kwargs = {"echo": settings.debug}
    if url.startswith("sqlite"):
        # In-memory SQLite must share a single connection across sessions
        engine_kwargs.update(
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )

    _engine = create_async_engine(url, **engine_kwargs)

    _session_maker = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    return _engine


async def close_database() -> None:
    """
    Close the database engine and dispose of connections.

    Should be called during application shutdown.
    """
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None


def translate_database_error(exc: SQLAlchemyError) -> ApplicationException:
    """
    Map a SQLAlchemy failure onto a core error kind.

    IntegrityError and StaleDataError become Conflict, connectivity problems
    become Unavailable, anything else is a RepositoryException.
    """
    if isinstance(exc, (IntegrityError, StaleDataError)):
        return ConflictException(
            "Conflicting write detected",
            {"error_type": type(exc).__name__}
        )
    if isinstance(exc, (OperationalError, InterfaceError)):
        return ServiceUnavailableException(
            "Database unavailable",
            {"error_type": type(exc).__name__}
        )
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return ServiceUnavailableException("Database connection lost")
    return RepositoryException(
        "Database operation failed",
        {"error_type": type(exc).__name__}
    )


async def create_tables() -> None:
    """
    Create all database tables.

    This should only be used for development/testing.
    Production should use migrations (Alembic).
    """
    # Register mappers on the metadata before create_all
    import src.grievance.infrastructure.models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
