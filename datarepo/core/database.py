"""
Database engine and session helpers.

Provides SQLAlchemy engine setup (blocking and async), session factories
and session context managers for callers that construct repositories.

Repositories never use these helpers themselves: they receive an
already-open session and leave its lifecycle to the caller.
"""

from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Iterator, Optional
import logging

from sqlalchemy import Engine, MetaData, create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from datarepo.core.config import settings
from datarepo.models.base import Base

logger = logging.getLogger(__name__)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_memory_sqlite(url: str) -> bool:
    # sqlite:// and sqlite:///:memory: both open a private in-memory database
    path = url.split("://", 1)[1]
    return path == "" or ":memory:" in path


def _engine_kwargs(url: str, echo: bool) -> dict:
    engine_kwargs: dict = {"echo": echo}

    if _is_sqlite(url):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        # An in-memory database lives in its connection; share one connection
        if _is_memory_sqlite(url):
            engine_kwargs["poolclass"] = StaticPool

    return engine_kwargs


def _install_sqlite_pragmas(sync_engine: Engine, url: str) -> None:
    """Enable FK enforcement (and WAL for file databases) on every connection."""
    use_wal = not _is_memory_sqlite(url)

    @event.listens_for(sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ANN001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if use_wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def create_engine_from_settings(
    url: Optional[str] = None,
    echo: Optional[bool] = None
) -> Engine:
    """
    Create a blocking engine.

    Args:
        url: Database URL (defaults to settings.blocking_database_url)
        echo: Echo SQL (defaults to settings.sql_echo)

    Returns:
        Configured Engine instance
    """
    url = url or settings.blocking_database_url
    echo = settings.sql_echo if echo is None else echo

    engine = create_engine(url, **_engine_kwargs(url, echo))
    if _is_sqlite(url):
        _install_sqlite_pragmas(engine, url)
    return engine


def create_async_engine_from_settings(
    url: Optional[str] = None,
    echo: Optional[bool] = None
) -> AsyncEngine:
    """
    Create an async engine.

    For SQLite:
    - Uses StaticPool for in-memory databases
    - Enables check_same_thread=False for async compatibility
    - Turns on foreign key enforcement per connection

    Args:
        url: Database URL (defaults to settings.database_url)
        echo: Echo SQL (defaults to settings.sql_echo)

    Returns:
        Configured AsyncEngine instance
    """
    url = url or settings.database_url
    echo = settings.sql_echo if echo is None else echo

    engine = create_async_engine(url, **_engine_kwargs(url, echo))
    if _is_sqlite(url):
        _install_sqlite_pragmas(engine.sync_engine, url)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory for blocking repositories."""
    return sessionmaker(
        engine,
        class_=Session,
        expire_on_commit=False,  # Don't expire objects after commit
        autoflush=False,
    )


def make_async_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory for async repositories."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """
    Yield a session and always close it.

    Example:
        with session_scope(factory) as session:
            people = Repository(session, Person)
            people.add(Person(name="Ada"))

    Note:
        No implicit commit: repository operations commit themselves.
    """
    session = factory()
    try:
        yield session
    finally:
        session.close()


@asynccontextmanager
async def async_session_scope(factory: async_sessionmaker) -> AsyncIterator[AsyncSession]:
    """Async counterpart of session_scope."""
    async with factory() as session:
        yield session


def init_models(engine: Engine, metadata: MetaData = Base.metadata) -> None:
    """
    Create all tables for metadata.

    Intended for tests and local development; production schemas are
    managed outside this package.
    """
    metadata.create_all(engine)


async def init_models_async(engine: AsyncEngine, metadata: MetaData = Base.metadata) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


class DatabaseHealthCheck:
    """
    Database health check utilities.

    Provides methods to verify database connectivity and readiness.
    """

    @staticmethod
    def check_connection(engine: Engine) -> bool:
        """
        Check if the database is reachable.

        Returns:
            True if a trivial query succeeds, False otherwise
        """
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.warning("Database connection check failed", exc_info=True)
            return False

    @staticmethod
    async def check_connection_async(engine: AsyncEngine) -> bool:
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.warning("Database connection check failed", exc_info=True)
            return False

    @staticmethod
    def get_database_info(engine) -> dict:
        """
        Get database information for monitoring.

        Returns:
            Dictionary with the (password-masked) URL, dialect and async flag
        """
        return {
            "url": engine.url.render_as_string(hide_password=True),
            "dialect": engine.dialect.name,
            "async": isinstance(engine, AsyncEngine),
        }
