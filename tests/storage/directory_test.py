"""Tests for the LDAP directory session."""

from __future__ import annotations

import pytest
import structlog
from bonsai.errors import ConnectionError as LDAPConnectionError
from bonsai.errors import (
    InsufficientAccess,
    NoSuchObjectError,
    SizeLimitError,
    UnwillingToPerform,
)
from bonsai.errors import TimeoutError as LDAPTimeoutError

from idportal.constants import DN_ONLY_ATTRIBUTES
from idportal.exceptions import (
    BindError,
    DirectoryConnectError,
    ModifyError,
    NotBoundError,
    SearchError,
    SessionStateError,
)
from idportal.models.directory import AttributeChange, DirectoryEndpoint
from idportal.models.enums import BindFailure, ModifyFailure, SearchFailure
from idportal.storage.directory import DirectorySession

from ..support.constants import (
    SERVICE_DN,
    SERVICE_PASSWORD,
    TEST_PASSWORD,
    USER_BASE_DN,
)
from ..support.ldap import MockLDAP

ENDPOINT = DirectoryEndpoint(url="ldaps://ldap.example.com")


def build_session(endpoint: DirectoryEndpoint = ENDPOINT) -> DirectorySession:
    return DirectorySession(endpoint, structlog.get_logger("idportal"))


@pytest.mark.asyncio
async def test_bind_search(mock_ldap: MockLDAP) -> None:
    dn = mock_ldap.add_test_user("jdoe", name="Jane Doe")

    async with build_session() as session:
        assert session.bound_dn is None
        await session.bind("jdoe@example.com", TEST_PASSWORD)
        assert session.bound_dn == "jdoe@example.com"
        entries = await session.search(
            USER_BASE_DN, "(sAMAccountName=jdoe)", ["displayName"]
        )
        assert mock_ldap.open_connections == 1

    assert len(entries) == 1
    assert entries[0].dn == dn
    assert entries[0].get("DISPLAYNAME") == ["Jane Doe"]
    assert entries[0].first("displayName") == "Jane Doe"
    assert entries[0].first("mail") is None
    assert mock_ldap.searches[0].timeout == ENDPOINT.timeout
    assert mock_ldap.searches[0].bound_dn == dn
    assert mock_ldap.cert_policies == ["demand", "demand"]
    assert mock_ldap.open_connections == 0


@pytest.mark.asyncio
async def test_unverified_certificate(mock_ldap: MockLDAP) -> None:
    endpoint = DirectoryEndpoint(
        url="ldaps://ldap.example.com", verify_certificate=False
    )
    async with build_session(endpoint):
        pass
    assert mock_ldap.cert_policies == ["never"]


@pytest.mark.asyncio
async def test_dn_only_search(mock_ldap: MockLDAP) -> None:
    dn = mock_ldap.add_test_user("jdoe", name="Jane Doe")

    async with build_session() as session:
        await session.bind(SERVICE_DN, SERVICE_PASSWORD)
        entries = await session.search(
            USER_BASE_DN, "(sAMAccountName=jdoe)", DN_ONLY_ATTRIBUTES
        )

    assert [e.dn for e in entries] == [dn]
    assert entries[0].attributes == {}


@pytest.mark.asyncio
async def test_not_bound(mock_ldap: MockLDAP) -> None:
    mock_ldap.add_test_user("jdoe")
    change = AttributeChange.replace("mail", "jdoe@example.org")

    async with build_session() as session:
        with pytest.raises(NotBoundError):
            await session.search(USER_BASE_DN, "(sAMAccountName=jdoe)", [])
        with pytest.raises(NotBoundError):
            await session.modify(f"CN=jdoe,{USER_BASE_DN}", [change])

        # A failed bind leaves the session unbound.
        with pytest.raises(BindError):
            await session.bind("jdoe@example.com", "wrong")
        assert session.bound_dn is None
        with pytest.raises(NotBoundError):
            await session.search(USER_BASE_DN, "(sAMAccountName=jdoe)", [])

    assert mock_ldap.searches == []
    assert mock_ldap.modifies == []


@pytest.mark.asyncio
async def test_session_state(mock_ldap: MockLDAP) -> None:
    session = build_session()
    with pytest.raises(SessionStateError):
        await session.bind(SERVICE_DN, SERVICE_PASSWORD)

    await session.open()
    with pytest.raises(SessionStateError):
        await session.open()
    await session.bind(SERVICE_DN, SERVICE_PASSWORD)
    session.close()
    assert mock_ldap.open_connections == 0

    # Closing is idempotent, but the session cannot be used afterwards.
    session.close()
    with pytest.raises(SessionStateError):
        await session.bind(SERVICE_DN, SERVICE_PASSWORD)
    with pytest.raises(SessionStateError):
        await session.search(USER_BASE_DN, "(sAMAccountName=jdoe)", [])

    # Closing a session that was never opened does nothing.
    build_session().close()


@pytest.mark.asyncio
async def test_rebind(mock_ldap: MockLDAP) -> None:
    dn = mock_ldap.add_test_user("jdoe")

    async with build_session() as session:
        await session.bind("jdoe@example.com", TEST_PASSWORD)
        await session.bind(SERVICE_DN, SERVICE_PASSWORD)
        assert session.bound_dn == SERVICE_DN
        assert mock_ldap.open_connections == 1
        await session.search(USER_BASE_DN, "(sAMAccountName=jdoe)", [])

        # A failed rebind must not leave the previous identity in place.
        with pytest.raises(BindError):
            await session.bind(dn, "wrong")
        assert session.bound_dn is None
        assert mock_ldap.open_connections == 0

    assert mock_ldap.searches[0].bound_dn == SERVICE_DN


@pytest.mark.asyncio
async def test_bind_empty_password(mock_ldap: MockLDAP) -> None:
    dn = mock_ldap.add_test_user("jdoe")

    async with build_session() as session:
        with pytest.raises(BindError) as excinfo:
            await session.bind(dn, "")
        assert excinfo.value.reason == BindFailure.invalid_credentials
        with pytest.raises(BindError) as excinfo:
            await session.bind("", TEST_PASSWORD)
        assert excinfo.value.reason == BindFailure.invalid_credentials

    assert mock_ldap.binds == []
    assert mock_ldap.failed_binds == []


@pytest.mark.asyncio
async def test_bind_errors(mock_ldap: MockLDAP) -> None:
    async with build_session() as session:
        with pytest.raises(BindError) as excinfo:
            await session.bind(SERVICE_DN, "wrong")
        assert excinfo.value.reason == BindFailure.invalid_credentials

        mock_ldap.bind_error = LDAPConnectionError("Can't contact server")
        with pytest.raises(BindError) as excinfo:
            await session.bind(SERVICE_DN, SERVICE_PASSWORD)
        assert excinfo.value.reason == BindFailure.server_unavailable

        mock_ldap.bind_error = LDAPTimeoutError("Timed out")
        with pytest.raises(BindError) as excinfo:
            await session.bind(SERVICE_DN, SERVICE_PASSWORD)
        assert excinfo.value.reason == BindFailure.server_unavailable

        mock_ldap.bind_error = UnwillingToPerform("No")
        with pytest.raises(BindError) as excinfo:
            await session.bind(SERVICE_DN, SERVICE_PASSWORD)
        assert excinfo.value.reason == BindFailure.other


@pytest.mark.asyncio
async def test_connect_error(mock_ldap: MockLDAP) -> None:
    mock_ldap.connect_error = LDAPConnectionError("Can't contact server")
    session = build_session()
    with pytest.raises(DirectoryConnectError):
        await session.open()
    session.close()
    assert mock_ldap.open_connections == 0


@pytest.mark.asyncio
async def test_search_errors(mock_ldap: MockLDAP) -> None:
    mock_ldap.add_test_user("jdoe")
    mock_ldap.add_test_user("jdoe", name="Other Jane")
    search_filter = "(sAMAccountName=jdoe)"

    async with build_session() as session:
        await session.bind(SERVICE_DN, SERVICE_PASSWORD)
        with pytest.raises(SearchError) as excinfo:
            await session.search(
                USER_BASE_DN, search_filter, [], size_limit=1
            )
        assert excinfo.value.reason == SearchFailure.size_limit

        mock_ldap.search_error = LDAPTimeoutError("Timed out")
        with pytest.raises(SearchError) as excinfo:
            await session.search(
                USER_BASE_DN, search_filter, [], timeout=1.0
            )
        assert excinfo.value.reason == SearchFailure.timeout
        assert mock_ldap.searches[-1].timeout == 1.0

        mock_ldap.search_error = SizeLimitError("Size limit exceeded")
        with pytest.raises(SearchError) as excinfo:
            await session.search(USER_BASE_DN, search_filter, [])
        assert excinfo.value.reason == SearchFailure.size_limit

        mock_ldap.search_error = NoSuchObjectError("No such object")
        with pytest.raises(SearchError) as excinfo:
            await session.search(USER_BASE_DN, search_filter, [])
        assert excinfo.value.reason == SearchFailure.other


@pytest.mark.asyncio
async def test_modify(mock_ldap: MockLDAP) -> None:
    dn = mock_ldap.add_test_user("jdoe")
    changes = [
        AttributeChange.replace("thumbnailPhoto", b"thumbnail"),
        AttributeChange.password("new password"),
    ]

    async with build_session() as session:
        await session.bind(SERVICE_DN, SERVICE_PASSWORD)
        with pytest.raises(ValueError, match="No changes"):
            await session.modify(dn, [])
        await session.modify(dn, changes)

    assert len(mock_ldap.modifies) == 1
    assert mock_ldap.modifies[0].attributes == [
        "thumbnailPhoto",
        "unicodePwd",
    ]
    entry = mock_ldap.get_entry(dn)
    assert entry
    assert entry.get("thumbnailPhoto") == [b"thumbnail"]
    assert entry.password == "new password"


@pytest.mark.asyncio
async def test_modify_errors(mock_ldap: MockLDAP) -> None:
    dn = mock_ldap.add_test_user("jdoe")
    changes = [AttributeChange.password("rejected")]
    mock_ldap.rejected_passwords.add("rejected")

    async with build_session() as session:
        await session.bind(SERVICE_DN, SERVICE_PASSWORD)
        with pytest.raises(ModifyError) as excinfo:
            await session.modify(dn, changes)
        assert excinfo.value.reason == ModifyFailure.constraint_violation
        assert mock_ldap.password_for(dn) == TEST_PASSWORD

        with pytest.raises(ModifyError) as excinfo:
            await session.modify(f"CN=nobody,{USER_BASE_DN}", changes)
        assert excinfo.value.reason == ModifyFailure.not_found

        mock_ldap.modify_error = InsufficientAccess("Insufficient access")
        with pytest.raises(ModifyError) as excinfo:
            await session.modify(dn, changes)
        assert excinfo.value.reason == ModifyFailure.permission_denied

        mock_ldap.modify_error = LDAPTimeoutError("Timed out")
        with pytest.raises(ModifyError) as excinfo:
            await session.modify(dn, changes)
        assert excinfo.value.reason == ModifyFailure.timeout

        mock_ldap.modify_error = LDAPConnectionError("Connection lost")
        with pytest.raises(ModifyError) as excinfo:
            await session.modify(dn, changes)
        assert excinfo.value.reason == ModifyFailure.other

    # The new password never appears in the representation of a change.
    assert "rejected" not in repr(changes[0])
