"""LDAP directory session for idportal."""

from __future__ import annotations

from types import TracebackType
from typing import Self

from bonsai import LDAPClient, LDAPEntry, LDAPSearchScope
from bonsai.asyncio import AIOLDAPConnection
from bonsai.errors import (
    AuthenticationError,
    InsufficientAccess,
    LDAPError,
    NoSuchObjectError,
    ObjectClassViolation,
    PasswordPolicyError,
    SizeLimitError,
    UnwillingToPerform,
)
from bonsai.errors import ConnectionError as LDAPConnectionError
from bonsai.errors import TimeoutError as LDAPTimeoutError
from structlog.stdlib import BoundLogger

from ..exceptions import (
    BindError,
    DirectoryConnectError,
    ModifyError,
    NotBoundError,
    SearchError,
    SessionStateError,
)
from ..models.directory import (
    AttributeChange,
    DirectoryEndpoint,
    DirectoryEntry,
)
from ..models.enums import BindFailure, ModifyFailure, SearchFailure

_CONSTRAINT_VIOLATION = 19
"""LDAP result code returned when new values violate a server constraint."""

__all__ = ["DirectorySession"]


class DirectorySession:
    """A single connection to the LDAP server, bound to one identity.

    A session must be opened before use and closed afterwards, preferably by
    using it as an async context manager. Binding replaces the underlying
    connection with a new one authenticated as the given DN, so the session
    is never used under a previous identity after a rebind. Sessions are
    never shared between requests and are never retried.

    Parameters
    ----------
    endpoint
        LDAP server to connect to.
    logger
        Logger for debug messages and errors.
    """

    def __init__(
        self, endpoint: DirectoryEndpoint, logger: BoundLogger
    ) -> None:
        self._endpoint = endpoint
        self._logger = logger.bind(ldap_url=endpoint.url)
        self._conn: AIOLDAPConnection | None = None
        self._bound_dn: str | None = None
        self._opened = False
        self._closed = False

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def bound_dn(self) -> str | None:
        """DN the session is currently bound as, if any."""
        return self._bound_dn

    @property
    def endpoint(self) -> DirectoryEndpoint:
        """LDAP server used by this session."""
        return self._endpoint

    async def open(self) -> None:
        """Connect to the LDAP server without authenticating.

        Raises
        ------
        DirectoryConnectError
            Raised if the server cannot be reached.
        SessionStateError
            Raised if the session was already opened.
        """
        if self._opened:
            raise SessionStateError("Directory session already opened")
        self._opened = True
        try:
            self._conn = await self._connect(None, None)
        except (LDAPError, TimeoutError) as e:
            msg = f"Cannot connect to LDAP server: {e!s}"
            self._logger.warning("Cannot connect to LDAP server", error=str(e))
            raise DirectoryConnectError(msg) from e
        self._logger.debug("Opened LDAP connection")

    async def bind(self, dn: str, password: str) -> None:
        """Authenticate the session as the given identity.

        Any existing connection is closed first. If the bind fails, the
        session is left open but unbound.

        Parameters
        ----------
        dn
            Bind identity. Usually a DN, but Active Directory also accepts
            user principal names and down-level logon names.
        password
            Password for that identity.

        Raises
        ------
        BindError
            Raised if the bind was rejected or the server could not be
            reached.
        SessionStateError
            Raised if the session is not open.
        """
        self._check_open()
        self._release()
        logger = self._logger.bind(ldap_bind=dn)

        # A simple bind with an empty password is an unauthenticated bind,
        # which most servers accept without checking anything.
        if not dn or not password:
            msg = "Empty bind identity or password"
            logger.debug("Rejecting LDAP bind", error=msg)
            raise BindError(msg, BindFailure.invalid_credentials)

        logger.debug("Binding to LDAP server")
        try:
            self._conn = await self._connect(dn, password)
        except AuthenticationError as e:
            logger.info("LDAP bind rejected", error=str(e))
            msg = f"Bind as {dn} rejected: {e!s}"
            raise BindError(msg, BindFailure.invalid_credentials) from e
        except (LDAPConnectionError, LDAPTimeoutError, TimeoutError) as e:
            logger.warning("Cannot bind to LDAP server", error=str(e))
            msg = f"Cannot bind to LDAP server: {e!s}"
            raise BindError(msg, BindFailure.server_unavailable) from e
        except LDAPError as e:
            logger.exception("LDAP bind failed", error=str(e))
            msg = f"Bind as {dn} failed: {e!s}"
            raise BindError(msg, BindFailure.other) from e
        self._bound_dn = dn

    def close(self) -> None:
        """Close the session.

        Closing a session that is already closed, or was never opened, does
        nothing.
        """
        if self._closed:
            return
        self._closed = True
        if self._conn:
            self._logger.debug("Closing LDAP connection")
        self._release()

    async def modify(self, dn: str, changes: list[AttributeChange]) -> None:
        """Apply changes to an entry in one modify request.

        Parameters
        ----------
        dn
            DN of the entry to change.
        changes
            Changes to make. The server applies all of them or none of them.

        Raises
        ------
        ModifyError
            Raised if the server rejected the change.
        NotBoundError
            Raised if the session has not successfully bound.
        SessionStateError
            Raised if the session is not open.
        ValueError
            Raised if no changes were given.
        """
        conn = self._check_bound()
        if not changes:
            raise ValueError("No changes to apply")
        logger = self._logger.bind(
            ldap_bind=self._bound_dn,
            ldap_dn=dn,
            ldap_attrs=[c.attribute for c in changes],
        )

        entry = LDAPEntry(dn, conn)
        for change in changes:
            optype = change.operation.to_bonsai()
            entry.change_attribute(change.attribute, optype, *change.values)
        logger.debug("Modifying LDAP entry")
        try:
            await entry.modify(timeout=self._endpoint.timeout)
        except NoSuchObjectError as e:
            logger.warning("LDAP entry not found", error=str(e))
            msg = f"Entry {dn} not found: {e!s}"
            raise ModifyError(msg, ModifyFailure.not_found) from e
        except InsufficientAccess as e:
            logger.warning("Insufficient access to modify", error=str(e))
            msg = f"Modify of {dn} not permitted: {e!s}"
            raise ModifyError(msg, ModifyFailure.permission_denied) from e
        except (
            ObjectClassViolation,
            PasswordPolicyError,
            UnwillingToPerform,
        ) as e:
            logger.info("LDAP modify rejected by server", error=str(e))
            msg = f"Modify of {dn} rejected: {e!s}"
            raise ModifyError(msg, ModifyFailure.constraint_violation) from e
        except (LDAPTimeoutError, TimeoutError) as e:
            logger.warning("LDAP modify timed out", error=str(e))
            msg = f"Modify of {dn} timed out: {e!s}"
            raise ModifyError(msg, ModifyFailure.timeout) from e
        except LDAPError as e:
            if getattr(e, "code", None) == _CONSTRAINT_VIOLATION:
                logger.info("LDAP modify rejected by server", error=str(e))
                msg = f"Modify of {dn} rejected: {e!s}"
                raise ModifyError(
                    msg, ModifyFailure.constraint_violation
                ) from e
            logger.exception("LDAP modify failed", error=str(e))
            msg = f"Modify of {dn} failed: {e!s}"
            raise ModifyError(msg, ModifyFailure.other) from e
        logger.debug("Modified LDAP entry")

    async def search(
        self,
        base: str,
        filter_exp: str,
        attributes: list[str],
        *,
        scope: LDAPSearchScope = LDAPSearchScope.SUB,
        size_limit: int = 0,
        timeout: float | None = None,
    ) -> list[DirectoryEntry]:
        """Search the directory.

        Parameters
        ----------
        base
            Base DN of the search.
        filter_exp
            Search filter. Any user-provided values must already be escaped.
        attributes
            Attributes to retrieve. Use ``["1.1"]`` to retrieve only DNs.
        scope
            Scope of the search.
        size_limit
            Maximum number of entries to return, or 0 for no limit.
        timeout
            Time limit in seconds, or `None` to use the default operation
            timeout of the endpoint.

        Returns
        -------
        list of DirectoryEntry
            Matching entries.

        Raises
        ------
        NotBoundError
            Raised if the session has not successfully bound.
        SearchError
            Raised if the search failed, including when more entries matched
            than ``size_limit``.
        SessionStateError
            Raised if the session is not open.
        """
        conn = self._check_bound()
        if timeout is None:
            timeout = self._endpoint.timeout
        logger = self._logger.bind(
            ldap_attrs=attributes,
            ldap_base=base,
            ldap_bind=self._bound_dn,
            ldap_search=filter_exp,
        )

        logger.debug("Querying LDAP")
        try:
            results = await conn.search(
                base=base,
                scope=scope,
                filter_exp=filter_exp,
                attrlist=attributes,
                timeout=timeout,
                sizelimit=size_limit,
            )
        except SizeLimitError as e:
            logger.info("Too many LDAP entries matched", error=str(e))
            msg = f"More than {size_limit} entries matched: {e!s}"
            raise SearchError(msg, SearchFailure.size_limit) from e
        except (LDAPTimeoutError, TimeoutError) as e:
            logger.warning("LDAP search timed out", error=str(e))
            msg = f"LDAP search timed out after {timeout}s"
            raise SearchError(msg, SearchFailure.timeout) from e
        except LDAPError as e:
            logger.exception("Cannot query LDAP", error=str(e))
            msg = f"Error querying LDAP: {e!s}"
            raise SearchError(msg, SearchFailure.other) from e

        entries = [self._to_entry(r) for r in results]
        logger.debug("LDAP entries found", count=len(entries))
        return entries

    def _check_bound(self) -> AIOLDAPConnection:
        """Ensure the session is bound and return its connection."""
        self._check_open()
        if not self._conn or not self._bound_dn:
            raise NotBoundError("Directory session is not bound")
        return self._conn

    def _check_open(self) -> None:
        if not self._opened:
            raise SessionStateError("Directory session not opened")
        if self._closed:
            raise SessionStateError("Directory session already closed")

    async def _connect(
        self, dn: str | None, password: str | None
    ) -> AIOLDAPConnection:
        """Open a new connection, authenticating if a DN is given."""
        client = LDAPClient(self._endpoint.url)
        if self._endpoint.verify_certificate:
            client.set_cert_policy("demand")
        else:
            client.set_cert_policy("never")
        client.set_server_chase_referrals(False)
        if dn and password:
            client.set_credentials("SIMPLE", user=dn, password=password)
        timeout = self._endpoint.connect_timeout
        return await client.connect(is_async=True, timeout=timeout)

    def _release(self) -> None:
        """Close the underlying connection and forget the bind identity."""
        if self._conn:
            self._conn.close()
        self._conn = None
        self._bound_dn = None

    @staticmethod
    def _to_entry(result: LDAPEntry) -> DirectoryEntry:
        attributes = {
            str(k): list(v)
            for k, v in result.items()
            if str(k).lower() != "dn"
        }
        return DirectoryEntry(dn=str(result.dn), attributes=attributes)
