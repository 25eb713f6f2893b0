"""
Pytest configuration and shared fixtures.

This module provides:
- Environment variable setup for tests
- In-memory SQLite engines and sessions (blocking and async)
"""

import os
import sys
from pathlib import Path

import pytest


# Set test environment variables BEFORE any imports
# This must happen first to ensure settings load with test values
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SQL_ECHO"] = "false"
os.environ["LOG_LEVEL"] = "DEBUG"

# Make tests/entities.py importable
tests_dir = Path(__file__).parent
sys.path.insert(0, str(tests_dir))


@pytest.fixture
def anyio_backend():
    """
    Configure anyio backend for async tests.

    Returns:
        str: Backend name ("asyncio")
    """
    return "asyncio"


@pytest.fixture
def engine():
    """Blocking in-memory engine with all entity tables created."""
    from datarepo.core.database import create_engine_from_settings, init_models
    import entities  # noqa: F401 - Import to register models

    engine = create_engine_from_settings("sqlite:///:memory:")
    init_models(engine)

    yield engine

    engine.dispose()


@pytest.fixture
def session(engine):
    """
    Provide a blocking session for tests.

    The session is closed after the test; the engine is disposed with it.
    """
    from datarepo.core.database import make_session_factory, session_scope

    factory = make_session_factory(engine)
    with session_scope(factory) as session:
        yield session


@pytest.fixture
async def async_engine():
    """Async in-memory engine with all entity tables created."""
    from datarepo.core.database import (
        create_async_engine_from_settings,
        init_models_async,
    )
    import entities  # noqa: F401 - Import to register models

    engine = create_async_engine_from_settings("sqlite+aiosqlite:///:memory:")
    await init_models_async(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
async def async_session(async_engine):
    """Provide an async session for tests."""
    from datarepo.core.database import async_session_scope, make_async_session_factory

    factory = make_async_session_factory(async_engine)
    async with async_session_scope(factory) as session:
        yield session
