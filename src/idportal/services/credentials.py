"""Verification of user credentials against the directory."""

from __future__ import annotations

from collections.abc import Callable

from bonsai import LDAPSearchScope
from bonsai.utils import escape_filter_exp
from structlog.stdlib import BoundLogger

from ..config import LDAPConfig
from ..exceptions import (
    AuthError,
    BindError,
    DirectoryConnectError,
    SearchError,
)
from ..models.directory import DirectoryEntry
from ..models.enums import AuthFailure, BindFailure, SearchFailure
from ..models.identity import NormalizedIdentity
from ..projection import IdentityProjection
from ..storage.directory import DirectorySession

__all__ = ["CredentialVerifier", "bind_identity", "user_filter"]


def bind_identity(config: LDAPConfig, username: str) -> str:
    """Determine the identity to bind as for a login name.

    Parameters
    ----------
    config
        LDAP configuration.
    username
        Name typed by the user.

    Returns
    -------
    str
        The name unchanged if it is already a user principal name, down-level
        logon name, or DN. Otherwise the name formatted with ``bind_format``,
        if set.
    """
    if any(c in username for c in ("@", "\\", "=")):
        return username
    if config.bind_format:
        return config.bind_format.format(username=username)
    return username


def user_filter(
    config: LDAPConfig, username: str, *, alternate: bool = True
) -> str:
    """Construct the search filter for the entry of a user.

    Parameters
    ----------
    config
        LDAP configuration.
    username
        Name to search for. It is escaped before use.
    alternate
        Whether to also match the alternate username attribute, if one is
        configured.

    Returns
    -------
    str
        LDAP search filter.
    """
    value = escape_filter_exp(username)
    match = f"({config.username_attr}={value})"
    if alternate and config.alternate_username_attr:
        alt = f"({config.alternate_username_attr}={value})"
        match = f"(|{match}{alt})"
    return f"(&(objectClass={config.user_object_class}){match})"


class CredentialVerifier:
    """Authenticate users with their directory password.

    Parameters
    ----------
    config
        LDAP configuration.
    session_factory
        Callable returning a new, unopened directory session.
    projection
        Converter from LDAP entries to identities.
    logger
        Logger to use.
    """

    def __init__(
        self,
        config: LDAPConfig,
        session_factory: Callable[[], DirectorySession],
        projection: IdentityProjection,
        logger: BoundLogger,
    ) -> None:
        self._config = config
        self._session_factory = session_factory
        self._projection = projection
        self._logger = logger

    async def verify(self, username: str, password: str) -> NormalizedIdentity:
        """Verify the username and password of a user.

        The user binds with their own credentials and then looks up their own
        entry, so no service account is needed.

        Parameters
        ----------
        username
            Login name of the user: a bare username, user principal name,
            down-level logon name, or DN.
        password
            Password of the user.

        Returns
        -------
        NormalizedIdentity
            Identity of the authenticated user.

        Raises
        ------
        AuthError
            Raised if authentication failed. The ``reason`` attribute says
            why.
        """
        if not username or not password:
            msg = "Username or password is empty"
            raise AuthError(msg, AuthFailure.invalid_credentials)
        logger = self._logger.bind(user=username)

        try:
            async with self._session_factory() as session:
                name = bind_identity(self._config, username)
                await session.bind(name, password)
                entries: list[DirectoryEntry] = []
                search = self._build_search(username)
                if search:
                    base, search_filter, scope = search
                    entries = await session.search(
                        base,
                        search_filter,
                        self._config.identity_attributes,
                        scope=scope,
                        size_limit=1,
                    )
        except DirectoryConnectError as e:
            raise AuthError(str(e), AuthFailure.directory_unavailable) from e
        except BindError as e:
            match e.reason:
                case BindFailure.invalid_credentials:
                    reason = AuthFailure.invalid_credentials
                case BindFailure.server_unavailable:
                    reason = AuthFailure.directory_unavailable
                case _:
                    reason = AuthFailure.other
            raise AuthError(str(e), reason) from e
        except SearchError as e:
            if e.reason == SearchFailure.timeout:
                reason = AuthFailure.directory_unavailable
            else:
                reason = AuthFailure.other
            raise AuthError(str(e), reason) from e

        if not entries:
            logger.warning("Authenticated user not found in directory")
            msg = f"No entry found for {username}"
            raise AuthError(msg, AuthFailure.user_not_found)
        identity = self._projection.project(entries[0])

        # Active Directory rejects binds by disabled or locked accounts, but
        # other servers may not, so check again here.
        if identity.disabled:
            logger.info("Login by disabled account")
            msg = f"Account {identity.username} is disabled"
            raise AuthError(msg, AuthFailure.account_disabled)
        if identity.locked:
            logger.info("Login by locked account")
            msg = f"Account {identity.username} is locked"
            raise AuthError(msg, AuthFailure.account_locked)

        logger.debug("Verified user credentials", dn=identity.dn)
        return identity

    def _build_search(
        self, username: str
    ) -> tuple[str, str, LDAPSearchScope] | None:
        """Construct the search for the entry of a user after login.

        Parameters
        ----------
        username
            Login name of the user.

        Returns
        -------
        tuple of str, str, and LDAPSearchScope, or None
            Base, filter, and scope of the search, or `None` if the login
            name is a DN outside of the user search base.
        """
        object_class = f"(objectClass={self._config.user_object_class})"
        if "=" in username and "@" not in username:
            base_dn = self._config.user_base_dn.lower()
            if not username.lower().endswith("," + base_dn):
                return None
            return (username, object_class, LDAPSearchScope.BASE)
        if "\\" in username:
            username = username.rsplit("\\", 1)[1]
        search_filter = user_filter(self._config, username)
        return (self._config.user_base_dn, search_filter, LDAPSearchScope.SUB)
