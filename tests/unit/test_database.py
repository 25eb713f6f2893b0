"""
Tests for engine and session helpers.

Uses in-memory SQLite for every case; no files are created.
"""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from datarepo.core.database import (
    DatabaseHealthCheck,
    async_session_scope,
    create_async_engine_from_settings,
    create_engine_from_settings,
    make_async_session_factory,
    make_session_factory,
    session_scope,
)


class TestEngineFactories:
    """Tests for engine construction."""

    def test_memory_sqlite_uses_static_pool(self):
        engine = create_engine_from_settings("sqlite:///:memory:")
        try:
            assert isinstance(engine.pool, StaticPool)
            assert engine.dialect.name == "sqlite"
        finally:
            engine.dispose()

    def test_defaults_to_blocking_settings_url(self):
        # conftest sets DATABASE_URL to sqlite+aiosqlite:///:memory:
        engine = create_engine_from_settings()
        try:
            assert engine.url.drivername == "sqlite"
        finally:
            engine.dispose()

    def test_foreign_keys_enforced(self, engine):
        with engine.connect() as conn:
            enabled = conn.execute(text("PRAGMA foreign_keys")).scalar_one()

        assert enabled == 1

    def test_get_database_info(self, engine):
        info = DatabaseHealthCheck.get_database_info(engine)

        assert info["dialect"] == "sqlite"
        assert info["async"] is False


class TestSessionScopes:
    """Tests for session factories and scopes."""

    def test_session_scope_closes_session(self, engine):
        factory = make_session_factory(engine)

        with session_scope(factory) as session:
            assert isinstance(session, Session)
            session.execute(text("SELECT 1"))

        assert not session.in_transaction()

    def test_session_scope_does_not_swallow_errors(self, engine):
        factory = make_session_factory(engine)

        with pytest.raises(IntegrityError):
            with session_scope(factory) as session:
                session.execute(text("INSERT INTO people (id, name) VALUES (1, NULL)"))

    def test_sessions_do_not_expire_on_commit(self, engine):
        factory = make_session_factory(engine)

        assert factory.kw["expire_on_commit"] is False
        assert factory.kw["autoflush"] is False


class TestHealthCheck:
    """Tests for DatabaseHealthCheck."""

    def test_check_connection_ok(self, engine):
        assert DatabaseHealthCheck.check_connection(engine) is True

    def test_check_connection_unreachable(self, tmp_path):
        missing = tmp_path / "missing" / "nested" / "db.sqlite"
        engine = create_engine_from_settings(f"sqlite:///{missing}")
        try:
            assert DatabaseHealthCheck.check_connection(engine) is False
        finally:
            engine.dispose()


@pytest.mark.anyio
class TestAsyncHelpers:
    """Async engine, scope and health check."""

    async def test_async_scope_yields_async_session(self, async_engine):
        factory = make_async_session_factory(async_engine)

        async with async_session_scope(factory) as session:
            assert isinstance(session, AsyncSession)
            result = await session.execute(text("SELECT 1"))
            assert result.scalar_one() == 1

    async def test_check_connection_async(self, async_engine):
        assert await DatabaseHealthCheck.check_connection_async(async_engine) is True

    async def test_async_engine_info(self):
        engine = create_async_engine_from_settings("sqlite+aiosqlite:///:memory:")
        try:
            info = DatabaseHealthCheck.get_database_info(engine)
            assert info["async"] is True
            assert info["dialect"] == "sqlite"
        finally:
            await engine.dispose()
