"""Check whether users exist in the directory."""

from __future__ import annotations

from collections.abc import Callable

from structlog.stdlib import BoundLogger

from ..config import LDAPConfig
from ..constants import DN_ONLY_ATTRIBUTES
from ..exceptions import (
    BindError,
    CheckError,
    ConfigError,
    DirectoryConnectError,
    SearchError,
)
from ..models.enums import SearchFailure
from ..storage.directory import DirectorySession
from .credentials import user_filter

__all__ = ["UserExistenceChecker"]


class UserExistenceChecker:
    """Look up whether a username is present in the directory.

    Parameters
    ----------
    config
        LDAP configuration.
    session_factory
        Callable returning a new, unopened directory session.
    logger
        Logger to use.
    """

    def __init__(
        self,
        config: LDAPConfig,
        session_factory: Callable[[], DirectorySession],
        logger: BoundLogger,
    ) -> None:
        self._config = config
        self._session_factory = session_factory
        self._logger = logger

    async def exists(self, username: str) -> bool:
        """Check whether a user exists.

        Parameters
        ----------
        username
            Username to look for.

        Returns
        -------
        bool
            Whether an entry with that username exists. Failed searches are
            reported as `False` and logged.

        Raises
        ------
        CheckError
            Raised if the directory could not be reached or the service
            account could not bind.
        ConfigError
            Raised if the service account is not configured.
        """
        if not self._config.bind_dn or not self._config.password:
            raise ConfigError("LDAP service account is not configured")
        logger = self._logger.bind(user=username)
        password = self._config.password.get_secret_value()

        try:
            async with self._session_factory() as session:
                await session.bind(self._config.bind_dn, password)
                entries = await session.search(
                    self._config.user_base_dn,
                    user_filter(self._config, username, alternate=False),
                    DN_ONLY_ATTRIBUTES,
                    size_limit=1,
                    timeout=self._config.existence_timeout,
                )
        except (BindError, DirectoryConnectError) as e:
            logger.error("Cannot check whether user exists", error=str(e))
            raise CheckError(str(e)) from e
        except SearchError as e:
            if e.reason == SearchFailure.size_limit:
                return True
            logger.warning("Search for user failed", error=str(e))
            return False
        return bool(entries)
