"""Manage an async database session."""

from __future__ import annotations

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

__all__ = ["DatabaseSessionDependency", "db_session_dependency"]


class DatabaseSessionDependency:
    """Manages an async per-request SQLAlchemy session.

    Notes
    -----
    The session factory comes from the process context, which is only created
    once the configuration has been loaded at app startup. An app that uses
    this dependency must call `initialize` from its lifespan hook and
    `aclose` during shutdown.

    Handlers are responsible for opening transactions with
    ``async with session.begin()``.
    """

    def __init__(self) -> None:
        self._factory: async_sessionmaker[AsyncSession] | None = None

    async def __call__(self) -> AsyncIterator[AsyncSession]:
        """Create a database session for one request.

        Yields
        ------
        AsyncSession
            The newly-created session, closed when the request completes.
        """
        if not self._factory:
            raise RuntimeError("db_session_dependency not initialized")
        async with self._factory() as session:
            yield session

    async def aclose(self) -> None:
        """Forget the session factory."""
        self._factory = None

    async def initialize(
        self, factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Initialize the session dependency.

        Parameters
        ----------
        factory
            Factory for sessions, bound to the shared database engine.
        """
        self._factory = factory


db_session_dependency = DatabaseSessionDependency()
"""The dependency that will return the per-request session."""
