"""Health check for the idportal service."""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import LDAPConfig
from ..storage.directory import DirectorySession

__all__ = ["HealthCheckService"]


class HealthCheckService:
    """Check the health of the idportal service.

    Intended to be invoked via a Kubernetes liveness check and test the
    underlying database and LDAP connections.

    Parameters
    ----------
    session
        Database session.
    config
        LDAP configuration.
    session_factory
        Callable returning a new, unopened directory session.
    """

    def __init__(
        self,
        session: AsyncSession,
        config: LDAPConfig,
        session_factory: Callable[[], DirectorySession],
    ) -> None:
        self._session = session
        self._config = config
        self._session_factory = session_factory

    async def check(self) -> bool:
        """Check the health of the database and the directory.

        Raises an exception of some kind if one of the underlying services is
        unavailable.

        Returns
        -------
        bool
            Whether the directory was checked, which requires a service
            account.
        """
        await self._session.execute(text("SELECT 1"))
        if not self._config.bind_dn or not self._config.password:
            return False
        password = self._config.password.get_secret_value()
        async with self._session_factory() as directory:
            await directory.bind(self._config.bind_dn, password)
        return True
