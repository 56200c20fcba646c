"""
Database connection management with connection pooling.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Mapping, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from chain_insight.config.models import DatabaseConfig
from chain_insight.database.models import Base

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """
    Async database connection manager with connection pooling support.

    Wraps one SQLAlchemy async engine and its session factory. PostgreSQL is
    reached through asyncpg and SQLite through aiosqlite.
    """

    def __init__(self, config: DatabaseConfig):
        """
        Initialize database connection manager.

        Args:
            config: Database configuration settings
        """
        self.config = config
        self.async_engine: Optional[AsyncEngine] = None
        self.async_session_factory: Optional[async_sessionmaker] = None
        self._is_initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def url(self) -> Optional[str]:
        return self.config.resolve_async_url()

    def initialize(self) -> None:
        """Initialize the async engine and session factory."""
        if self._is_initialized:
            return

        if not self.url:
            raise RuntimeError("Database URL not configured")

        self.async_engine = self._create_async_engine()
        self.async_session_factory = async_sessionmaker(
            bind=self.async_engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        self._is_initialized = True
        logger.info("Database connection initialized")

    def _create_async_engine(self) -> AsyncEngine:
        """Create asynchronous SQLAlchemy engine with connection pooling."""
        engine_kwargs: Dict[str, Any] = {
            "echo": self.config.echo,
        }

        if self.url.startswith("sqlite"):
            # One shared connection; in-memory databases live only as long as it does
            engine_kwargs.update({
                "poolclass": StaticPool,
                "connect_args": {
                    "check_same_thread": False,
                    "timeout": self.config.timeout,
                },
            })
        else:
            engine_kwargs.update({
                "pool_size": self.config.pool_size,
                "max_overflow": self.config.max_overflow,
                "pool_pre_ping": True,
                "pool_recycle": 3600,
                "pool_timeout": self.config.timeout,
            })

        engine = create_async_engine(self.url, **engine_kwargs)
        self._add_connection_listeners(engine)
        return engine

    def _add_connection_listeners(self, engine: AsyncEngine) -> None:
        """Add connection event listeners for monitoring."""

        @event.listens_for(engine.sync_engine, "checkout")
        def receive_checkout(dbapi_connection, connection_record, connection_proxy):
            logger.debug("Connection checked out from pool")

        @event.listens_for(engine.sync_engine, "checkin")
        def receive_checkin(dbapi_connection, connection_record):
            logger.debug("Connection returned to pool")

    async def create_tables_async(self) -> None:
        """Create all database tables asynchronously."""
        if not self.async_engine:
            raise RuntimeError("Async database not initialized")

        logger.info("Creating database tables (async)")
        async with self.async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully (async)")

    @asynccontextmanager
    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a new async database session as context manager."""
        if not self.async_session_factory:
            raise RuntimeError("Async database not initialized")

        async with self.async_session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def fetch_all(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run a read-only query and return rows as dicts."""
        async with self.get_async_session() as session:
            result = await session.execute(text(sql), dict(params or {}))
            return [dict(row) for row in result.mappings().all()]

    async def fetch_one(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> Optional[Dict[str, Any]]:
        rows = await self.fetch_all(sql, params)
        return rows[0] if rows else None

    async def close_async(self) -> None:
        """Close async database connections and cleanup resources."""
        if self.async_engine:
            await self.async_engine.dispose()
            logger.info("Async database engine disposed")
        self.async_engine = None
        self.async_session_factory = None
        self._is_initialized = False

    async def health_check_async(self) -> bool:
        """
        Perform an async health check on the database connection.

        Returns:
            True if database is accessible, False otherwise
        """
        try:
            async with self.get_async_session() as session:
                await session.execute(text("SELECT 1"))
                return True
        except (SQLAlchemyError, OSError, RuntimeError, TimeoutError) as e:
            logger.error(f"Async database health check failed: {e}")
            return False
