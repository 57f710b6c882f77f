"""Privileged changes to the directory entries of users."""

from __future__ import annotations

from collections.abc import Callable

from structlog.stdlib import BoundLogger

from ..config import LDAPConfig
from ..constants import DN_ONLY_ATTRIBUTES
from ..exceptions import (
    BindError,
    ConfigError,
    DirectoryConnectError,
    ModifyError,
    SearchError,
    WriteError,
)
from ..models.directory import AttributeChange
from ..models.enums import (
    BindFailure,
    ModifyFailure,
    SearchFailure,
    WriteFailure,
)
from ..models.identity import VerifiedCaller
from ..storage.directory import DirectorySession
from .credentials import user_filter

__all__ = ["DirectoryAttributeWriter"]


class DirectoryAttributeWriter:
    """Change attributes of a user entry using the service account.

    The entry is always located by searching for the username before it is
    modified, and all changes are sent in a single modify request.

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

    async def apply_changes(
        self,
        target_username: str,
        changes: list[AttributeChange],
        caller: VerifiedCaller,
        *,
        old_secret: str | None = None,
    ) -> None:
        """Apply changes to the entry of a user.

        Parameters
        ----------
        target_username
            Username whose entry should be changed.
        changes
            Changes to apply in one modify request.
        caller
            Authenticated user making the request. Users may only change
            their own entries.
        old_secret
            Current password of the user, required if the changes include
            the password attribute. It is verified by binding as the user
            before any change is made.

        Raises
        ------
        ConfigError
            Raised if the service account is not configured.
        ValueError
            Raised if no changes were given.
        WriteError
            Raised if the change could not be made. The ``reason`` attribute
            says why.
        """
        if not changes:
            raise ValueError("No changes to apply")
        logger = self._logger.bind(
            user=target_username,
            ldap_attrs=[c.attribute for c in changes],
        )
        if caller.username.lower() != target_username.lower():
            logger.warning(
                "Caller may not change entry", caller=caller.username
            )
            msg = f"{caller.username} may not change {target_username}"
            raise WriteError(msg, WriteFailure.unauthorized)
        if not self._config.bind_dn or not self._config.password:
            raise ConfigError("LDAP service account is not configured")
        bind_dn = self._config.bind_dn
        bind_password = self._config.password.get_secret_value()

        try:
            async with self._session_factory() as session:
                await self._service_bind(session, bind_dn, bind_password)
                dn = await self._find_dn(session, target_username)
                if self._changes_password(changes):
                    await self._verify_old_secret(dn, old_secret)
                if session.bound_dn != bind_dn:
                    await self._service_bind(session, bind_dn, bind_password)
                await self._modify(session, dn, changes)
        except DirectoryConnectError as e:
            raise WriteError(str(e), WriteFailure.directory_unavailable) from e
        logger.info("Changed directory entry", dn=dn)

    def _changes_password(self, changes: list[AttributeChange]) -> bool:
        attr = self._config.password_attr.lower()
        return any(c.attribute.lower() == attr for c in changes)

    async def _find_dn(self, session: DirectorySession, username: str) -> str:
        """Find the DN of a user, which must match exactly one entry."""
        try:
            entries = await session.search(
                self._config.user_base_dn,
                user_filter(self._config, username, alternate=False),
                DN_ONLY_ATTRIBUTES,
                size_limit=1,
            )
        except SearchError as e:
            if e.reason == SearchFailure.timeout:
                reason = WriteFailure.directory_unavailable
            else:
                reason = WriteFailure.other
            raise WriteError(str(e), reason) from e
        if not entries:
            msg = f"No entry found for {username}"
            raise WriteError(msg, WriteFailure.user_not_found)
        if len(entries) > 1:
            msg = f"Multiple entries found for {username}"
            raise WriteError(msg, WriteFailure.other)
        return entries[0].dn

    async def _modify(
        self,
        session: DirectorySession,
        dn: str,
        changes: list[AttributeChange],
    ) -> None:
        try:
            await session.modify(dn, changes)
        except ModifyError as e:
            match e.reason:
                case ModifyFailure.constraint_violation:
                    reason = WriteFailure.constraint_violation
                case ModifyFailure.not_found:
                    reason = WriteFailure.user_not_found
                case ModifyFailure.permission_denied:
                    reason = WriteFailure.unauthorized
                case _:
                    reason = WriteFailure.other
            raise WriteError(str(e), reason) from e

    async def _service_bind(
        self, session: DirectorySession, dn: str, password: str
    ) -> None:
        try:
            await session.bind(dn, password)
        except BindError as e:
            if e.reason == BindFailure.server_unavailable:
                reason = WriteFailure.directory_unavailable
            else:
                reason = WriteFailure.unauthorized
            self._logger.error("Cannot bind as service account", error=str(e))
            raise WriteError(str(e), reason) from e

    async def _verify_old_secret(
        self, dn: str, old_secret: str | None
    ) -> None:
        """Check the current password of a user by binding as them."""
        if not old_secret:
            msg = "Current password required to change password"
            raise WriteError(msg, WriteFailure.old_secret_invalid)
        try:
            async with self._session_factory() as session:
                await session.bind(dn, old_secret)
        except DirectoryConnectError as e:
            raise WriteError(str(e), WriteFailure.directory_unavailable) from e
        except BindError as e:
            if e.reason == BindFailure.server_unavailable:
                reason = WriteFailure.directory_unavailable
            else:
                reason = WriteFailure.old_secret_invalid
            raise WriteError(str(e), reason) from e
