"""
User API Backend — Database Connection Provider
=================================================

What:  Async SQLAlchemy engine, session handling, and per-query instrumentation.
Why:   Centralizes all database connection logic in one place.
How:   `Database` builds one async engine from the five DB_* settings and
       attaches a `QueryInstrumentation` to it. Request handlers receive the
       handle through application state (see `get_db_session`).
Who:   Created once by the application lifespan; consumed by controllers
       through FastAPI's dependency injection system.
When:  Engine is created at startup; sessions are created per-request.

Query instrumentation:
    Every statement executed on the engine produces
    1. one DEBUG log line with the SQL text (logger `userapi.database.queries`)
    2. one `database.query.duration` timing observation in milliseconds
    Nothing else is done with failures here: a bad host or password shows up
    as a connection error on the first query and propagates to the caller.

Connection Pooling Strategy:
    pool_size=20:      Persistent connections for normal load
    max_overflow=10:   Temporary connections for traffic spikes (total max = 30)
    pool_pre_ping:     Validates connections before use
    pool_recycle=3600: Recycles connections every hour
"""

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, AsyncIterator, Optional

from fastapi import Depends, Request
from sqlalchemy import event, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from userapi.config import Settings
from userapi.exceptions import DatabaseError
from userapi.metrics import MetricsClient, metrics as default_metrics

POSTGRES_DRIVER = "postgresql+asyncpg"
QUERY_DURATION_METRIC = "database.query.duration"

query_logger = logging.getLogger("userapi.database.queries")

# Key under Connection.info holding start times of in-flight statements
_START_TIMES_KEY = "userapi_query_start_times"


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection parameters, read once at startup and never changed."""

    host: str
    port: int
    database: str
    user: str
    password: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "DatabaseConfig":
        return cls(
            host=settings.db_host,
            port=settings.db_port,
            database=settings.db_name,
            user=settings.db_user,
            password=settings.db_password,
        )

    def url(self, drivername: str = POSTGRES_DRIVER) -> URL:
        # URL.create quotes special characters in the password itself
        return URL.create(
            drivername,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )


class QueryInstrumentation:
    """
    Logs and times every statement run on the engines it is attached to.

    Listens to SQLAlchemy's `before_cursor_execute` / `after_cursor_execute`
    events on one engine. A statement that fails is still reported once,
    from `handle_error`.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[MetricsClient] = None,
        metric_name: str = QUERY_DURATION_METRIC,
    ):
        self.logger = logger or query_logger
        self.metrics = metrics or default_metrics
        self.metric_name = metric_name

    def attach(self, engine: Any) -> None:
        """Registers the hooks on a sync Engine or on an AsyncEngine's sync_engine."""
        sync_engine: Engine = getattr(engine, "sync_engine", engine)
        event.listen(sync_engine, "before_cursor_execute", self.before_cursor_execute)
        event.listen(sync_engine, "after_cursor_execute", self.after_cursor_execute)
        event.listen(sync_engine, "handle_error", self.handle_error)

    def before_cursor_execute(self, conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault(_START_TIMES_KEY, []).append(time.perf_counter())

    def after_cursor_execute(self, conn, cursor, statement, parameters, context, executemany):
        self._finish(conn, statement)

    def handle_error(self, exception_context) -> None:
        conn = exception_context.connection
        if conn is None or not conn.info.get(_START_TIMES_KEY):
            return
        self._finish(conn, exception_context.statement)

    def _finish(self, conn, statement: Optional[str]) -> None:
        started = conn.info[_START_TIMES_KEY].pop()
        elapsed_ms = max((time.perf_counter() - started) * 1000.0, 0.0)
        self.logger.debug(statement)
        self.metrics.timing(self.metric_name, elapsed_ms)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Registers models with a single metadata object (used by Alembic).
    """
    pass


class Database:
    """
    The process-wide database handle.

    Construct it once and pass it where it is needed; nothing in this module
    creates one on import.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        instrumentation: Optional[QueryInstrumentation] = None,
        **engine_options: Any,
    ):
        self.config = config
        self.engine: AsyncEngine = create_async_engine(config.url(), **engine_options)
        self.instrumentation = instrumentation or QueryInstrumentation()
        self.instrumentation.attach(self.engine)

        # expire_on_commit=False: attributes stay readable after commit
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        instrumentation: Optional[QueryInstrumentation] = None,
    ) -> "Database":
        return cls(
            DatabaseConfig.from_settings(settings),
            instrumentation,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Provides a session that commits on success and rolls back on error.

        The session is always closed, returning its connection to the pool.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def ping(self) -> None:
        """Runs SELECT 1; raises whatever the driver raises on failure."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        """Closes all pooled connections."""
        await self.engine.dispose()


# ── FastAPI Dependencies ──────────────────────────────────────────────────
def get_database(request: Request) -> Database:
    """Returns the handle stored on the application by the lifespan."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise DatabaseError(context={"reason": "database handle not initialized"})
    return database


async def get_db_session(
    database: Database = Depends(get_database),
) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Example usage in a route:
        @router.get("/self")
        async def get_self(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with database.session() as session:
        yield session
