"""Database connection pooling, session management, and schema setup."""

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import Settings
from .logger import logger


class Base(DeclarativeBase):
    """Base class for ORM models."""


# ==================== Connection Pool Setup ====================


def _engine_options(settings: Settings) -> dict:
    """Pool and driver options for the configured backend."""
    if settings.is_sqlite:
        return {}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,  # Verify connections before use
        "connect_args": {
            "timeout": settings.DB_CONNECT_TIMEOUT,
            "command_timeout": settings.DB_QUERY_TIMEOUT,
        },
    }


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """Make SQLite take the write lock at BEGIN so concurrent writers serialize."""

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Owns the async engine and the session factory for one application."""

    def __init__(self, settings: Settings):
        self.engine: AsyncEngine = create_async_engine(
            settings.DB_URL,
            echo=False,
            **_engine_options(settings),
        )
        if settings.is_sqlite:
            _use_immediate_transactions(self.engine)
            logger.info("Database engine configured: sqlite (immediate transactions)")
        else:
            logger.info(
                f"Database engine configured: pool_size={settings.DB_POOL_SIZE}, "
                f"max_overflow={settings.DB_MAX_OVERFLOW}, timeout={settings.DB_POOL_TIMEOUT}s"
            )

        # Session factory for creating database sessions
        self.session = async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)

    async def create_tables(self) -> None:
        """Create all tables known to the ORM metadata."""
        # Register the models on Base.metadata
        from . import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    async def drop_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def check_connection(self) -> bool:
        """Check if database connection is healthy.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database health check failed: {str(e)}")
            return False

    # ==================== Cleanup ====================

    async def dispose(self) -> None:
        """Gracefully close all database connections.

        Called during application shutdown to properly cleanup connection pool.
        """
        logger.info("Disposing database engine and closing connections")
        await self.engine.dispose()
        logger.info("Database connections closed successfully")
