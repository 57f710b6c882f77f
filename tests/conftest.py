"""Test fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
import pytest_asyncio
import structlog
from asgi_lifespan import LifespanManager
from cryptography.fernet import Fernet
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from idportal.config import Config
from idportal.database import initialize_idportal_database
from idportal.factory import Factory
from idportal.main import create_app

from .support.config import configure
from .support.constants import TEST_HOSTNAME
from .support.ldap import MockLDAP, patch_ldap


@pytest.fixture(autouse=True)
def environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Set the settings that come from the environment.

    Each test gets its own SQLite database and session secret.
    """
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'idportal.sqlite'}"
    session_secret = Fernet.generate_key().decode()
    monkeypatch.setenv("IDPORTAL_DATABASE_URL", database_url)
    monkeypatch.setenv("IDPORTAL_SESSION_SECRET", session_secret)


@pytest.fixture
def config(environment: None) -> Config:
    """Set up and return the default test configuration."""
    return configure("base")


@pytest_asyncio.fixture
async def engine(config: Config) -> AsyncIterator[AsyncEngine]:
    """Create a database engine for testing."""
    engine = create_async_engine(config.database_url)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def empty_database(engine: AsyncEngine, config: Config) -> None:
    """Empty the database before a test."""
    logger = structlog.get_logger("idportal")
    await initialize_idportal_database(config, logger, engine, reset=True)


@pytest_asyncio.fixture
async def factory(
    empty_database: None, config: Config, engine: AsyncEngine
) -> AsyncIterator[Factory]:
    """Return a component factory.

    Note that this creates a separate SQLAlchemy session from any that may be
    created by the FastAPI app.
    """
    async with Factory.standalone(config, engine) as factory:
        yield factory


@pytest.fixture
def mock_ldap() -> Iterator[MockLDAP]:
    """Replace the bonsai LDAP API with a mock class."""
    yield from patch_ldap()


@pytest_asyncio.fixture
async def app(
    empty_database: None, mock_ldap: MockLDAP
) -> AsyncIterator[FastAPI]:
    """Return a configured test application.

    Wraps the application in a lifespan manager so that startup and shutdown
    events are sent during test execution.
    """
    app = create_app()
    async with LifespanManager(app):
        yield app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Return an ``httpx.AsyncClient`` configured to talk to the test app."""
    async with AsyncClient(
        base_url=f"https://{TEST_HOSTNAME}",
        transport=ASGITransport(app=app),
    ) as client:
        yield client
