"""Create idportal components."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import partial
from typing import Self

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from structlog.stdlib import BoundLogger

from .config import Config
from .projection import IdentityProjection
from .services.attributes import DirectoryAttributeWriter
from .services.credentials import CredentialVerifier
from .services.existence import UserExistenceChecker
from .services.health import HealthCheckService
from .services.password import PasswordService
from .services.photo import PhotoService
from .services.profile import ProfileService
from .storage.audit import AuditLogStore
from .storage.directory import DirectorySession
from .storage.profile import ProfileStore

__all__ = ["Factory", "ProcessContext"]


@dataclass(frozen=True, slots=True)
class ProcessContext:
    """Per-process application context.

    Holds the configuration and the database engine, which are shared by all
    requests. There is no shared LDAP state. Every operation opens and closes
    its own directory sessions.
    """

    config: Config
    """idportal's configuration."""

    engine: AsyncEngine
    """Database engine, which owns the connection pool."""

    sessionmaker: async_sessionmaker[AsyncSession]
    """Factory for database sessions."""

    @classmethod
    async def from_config(
        cls, config: Config, engine: AsyncEngine | None = None
    ) -> Self:
        """Create a new process context from the idportal configuration.

        Parameters
        ----------
        config
            The idportal configuration.
        engine
            If given, database engine to use instead of creating one.

        Returns
        -------
        ProcessContext
            Shared context for an idportal process.
        """
        if not engine:
            engine = create_async_engine(config.database_url)
        sessionmaker = async_sessionmaker(engine, expire_on_commit=False)
        return cls(config=config, engine=engine, sessionmaker=sessionmaker)

    async def aclose(self) -> None:
        """Clean up a process context.

        Called during shutdown, or before recreating the process context using
        a different configuration.
        """
        await self.engine.dispose()


class Factory:
    """Build idportal components.

    Uses the contents of a `ProcessContext` to construct the components of the
    application on demand.

    Parameters
    ----------
    context
        Shared process context.
    session
        Database session.
    logger
        Logger to use for errors.
    """

    @classmethod
    @asynccontextmanager
    async def standalone(
        cls, config: Config, engine: AsyncEngine | None = None
    ) -> AsyncIterator[Self]:
        """Async context manager for idportal components.

        Intended for the command-line interface. The process context and
        database session are closed on exit.

        Parameters
        ----------
        config
            idportal configuration.
        engine
            Database engine to use for connections, if one already exists.

        Yields
        ------
        Factory
            The factory. Must be used as an async context manager.
        """
        logger = structlog.get_logger("idportal")
        context = await ProcessContext.from_config(config, engine)
        try:
            async with context.sessionmaker() as session:
                yield cls(context, session, logger)
        finally:
            await context.aclose()

    def __init__(
        self,
        context: ProcessContext,
        session: AsyncSession,
        logger: BoundLogger,
    ) -> None:
        self.session = session
        self._context = context
        self._logger = logger

    @property
    def directory_session_factory(self) -> Callable[[], DirectorySession]:
        """Callable returning new, unopened directory sessions."""
        endpoint = self._context.config.ldap.endpoint
        return partial(DirectorySession, endpoint, self._logger)

    def create_attribute_writer(self) -> DirectoryAttributeWriter:
        """Create a writer for user entries in the directory."""
        return DirectoryAttributeWriter(
            self._context.config.ldap,
            self.directory_session_factory,
            self._logger,
        )

    def create_credential_verifier(self) -> CredentialVerifier:
        """Create a verifier for user credentials.

        Returns
        -------
        CredentialVerifier
            Newly-created verifier.
        """
        config = self._context.config.ldap
        return CredentialVerifier(
            config,
            self.directory_session_factory,
            IdentityProjection(config),
            self._logger,
        )

    def create_existence_checker(self) -> UserExistenceChecker:
        """Create a checker for whether users exist in the directory."""
        return UserExistenceChecker(
            self._context.config.ldap,
            self.directory_session_factory,
            self._logger,
        )

    def create_health_check_service(self) -> HealthCheckService:
        """Create a service for performing health checks.

        Returns
        -------
        HealthCheckService
            Newly-created health check service.
        """
        return HealthCheckService(
            self.session,
            self._context.config.ldap,
            self.directory_session_factory,
        )

    def create_password_service(self) -> PasswordService:
        """Create a service for changing directory passwords.

        Returns
        -------
        PasswordService
            Newly-created password service.
        """
        return PasswordService(
            self._context.config,
            self.create_attribute_writer(),
            self.create_profile_service(),
            self._logger,
        )

    def create_photo_service(self) -> PhotoService:
        """Create a service for changing profile photos.

        Returns
        -------
        PhotoService
            Newly-created photo service.
        """
        return PhotoService(
            self._context.config,
            self.create_attribute_writer(),
            self.create_profile_service(),
            self._logger,
        )

    def create_profile_service(self) -> ProfileService:
        """Create a service for local user profiles.

        Returns
        -------
        ProfileService
            Newly-created profile service.
        """
        return ProfileService(
            ProfileStore(self.session),
            AuditLogStore(self.session),
            self._logger,
        )

    def set_logger(self, logger: BoundLogger) -> None:
        """Replace the internal logger.

        Used by the context dependency to update the logger for all
        newly-created components when it's rebound with additional context.

        Parameters
        ----------
        logger
            New logger.
        """
        self._logger = logger
