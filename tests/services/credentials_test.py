"""Tests for verification of user credentials."""

from __future__ import annotations

import pytest
from bonsai import LDAPSearchScope
from bonsai.errors import ConnectionError as LDAPConnectionError
from bonsai.errors import TimeoutError as LDAPTimeoutError
from bonsai.utils import escape_filter_exp

from idportal.config import Config
from idportal.exceptions import AuthError
from idportal.factory import Factory
from idportal.models.enums import AuthFailure
from idportal.services.credentials import bind_identity, user_filter

from ..support.constants import TEST_PASSWORD, USER_BASE_DN
from ..support.ldap import MockLDAP

GROUPS = [
    "CN=Staff,OU=Groups,DC=example,DC=com",
    "CN=Portal Admins,OU=Groups,DC=example,DC=com",
]


def test_bind_identity(config: Config) -> None:
    assert bind_identity(config.ldap, "jdoe") == "jdoe@example.com"
    assert bind_identity(config.ldap, "jdoe@corp.com") == "jdoe@corp.com"
    assert bind_identity(config.ldap, "EXAMPLE\\jdoe") == "EXAMPLE\\jdoe"
    dn = "CN=Jane Doe,CN=Users,DC=example,DC=com"
    assert bind_identity(config.ldap, dn) == dn

    ldap = config.ldap.model_copy(update={"bind_format": None})
    assert bind_identity(ldap, "jdoe") == "jdoe"


def test_user_filter(config: Config) -> None:
    assert user_filter(config.ldap, "jdoe") == (
        "(&(objectClass=user)"
        "(|(sAMAccountName=jdoe)(userPrincipalName=jdoe)))"
    )
    assert user_filter(config.ldap, "jdoe", alternate=False) == (
        "(&(objectClass=user)(sAMAccountName=jdoe))"
    )

    # Filter metacharacters in user input must be escaped.
    username = "*)(objectClass=*"
    search = user_filter(config.ldap, username, alternate=False)
    escaped = escape_filter_exp(username)
    assert search == f"(&(objectClass=user)(sAMAccountName={escaped}))"
    assert "*" not in search


@pytest.mark.asyncio
async def test_verify(factory: Factory, mock_ldap: MockLDAP) -> None:
    dn = mock_ldap.add_test_user(
        "jdoe",
        name="Jane Doe",
        email="jane.doe@example.com",
        groups=GROUPS,
        photo=b"some-jpeg",
    )
    verifier = factory.create_credential_verifier()

    identity = await verifier.verify("jdoe", TEST_PASSWORD)
    assert identity.id == "jdoe"
    assert identity.username == "jdoe"
    assert identity.name == "Jane Doe"
    assert identity.email == "jane.doe@example.com"
    assert identity.dn == dn
    assert identity.groups == GROUPS
    assert identity.group_names == ["Staff", "Portal Admins"]
    assert identity.photo == b"some-jpeg"
    assert not identity.disabled
    assert not identity.locked
    assert mock_ldap.binds == ["jdoe@example.com"]
    assert mock_ldap.searches[0].size_limit == 1
    assert mock_ldap.searches[0].bound_dn == dn
    assert mock_ldap.open_connections == 0

    # Logging in with the user principal name finds the same entry.
    identity = await verifier.verify("jdoe@example.com", TEST_PASSWORD)
    assert identity.username == "jdoe"
    assert identity.dn == dn


@pytest.mark.asyncio
async def test_verify_login_forms(
    factory: Factory, mock_ldap: MockLDAP
) -> None:
    dn = mock_ldap.add_test_user("jdoe", name="Jane Doe")
    verifier = factory.create_credential_verifier()

    # The down-level logon name is searched by the part after the domain.
    identity = await verifier.verify("EXAMPLE\\jdoe", TEST_PASSWORD)
    assert identity.username == "jdoe"
    assert identity.dn == dn
    assert mock_ldap.binds == ["EXAMPLE\\jdoe"]
    search = mock_ldap.searches[-1]
    assert search.base == USER_BASE_DN
    assert search.scope == LDAPSearchScope.SUB
    assert "(sAMAccountName=jdoe)" in search.filter_exp

    # A DN login reads the entry itself.
    identity = await verifier.verify(dn, TEST_PASSWORD)
    assert identity.username == "jdoe"
    assert identity.dn == dn
    search = mock_ldap.searches[-1]
    assert search.base == dn
    assert search.scope == LDAPSearchScope.BASE
    assert search.filter_exp == "(objectClass=user)"
    assert mock_ldap.open_connections == 0


@pytest.mark.asyncio
async def test_verify_dn_outside_base(
    factory: Factory, mock_ldap: MockLDAP
) -> None:
    dn = mock_ldap.add_test_user(
        "outside", base_dn="OU=Other,DC=example,DC=com"
    )
    verifier = factory.create_credential_verifier()

    with pytest.raises(AuthError) as excinfo:
        await verifier.verify(dn, TEST_PASSWORD)
    assert excinfo.value.reason == AuthFailure.user_not_found
    assert mock_ldap.binds == [dn]
    assert mock_ldap.searches == []


@pytest.mark.asyncio
async def test_verify_invalid(factory: Factory, mock_ldap: MockLDAP) -> None:
    mock_ldap.add_test_user("jdoe")
    verifier = factory.create_credential_verifier()

    with pytest.raises(AuthError) as excinfo:
        await verifier.verify("jdoe", "wrong password")
    assert excinfo.value.reason == AuthFailure.invalid_credentials
    with pytest.raises(AuthError) as excinfo:
        await verifier.verify("nobody", TEST_PASSWORD)
    assert excinfo.value.reason == AuthFailure.invalid_credentials
    assert mock_ldap.searches == []

    # Empty credentials are rejected without contacting the server.
    with pytest.raises(AuthError) as excinfo:
        await verifier.verify("jdoe", "")
    assert excinfo.value.reason == AuthFailure.invalid_credentials
    with pytest.raises(AuthError) as excinfo:
        await verifier.verify("", TEST_PASSWORD)
    assert excinfo.value.reason == AuthFailure.invalid_credentials
    assert mock_ldap.failed_binds == [
        "jdoe@example.com",
        "nobody@example.com",
    ]
    assert mock_ldap.open_connections == 0


@pytest.mark.asyncio
async def test_verify_disabled(factory: Factory, mock_ldap: MockLDAP) -> None:
    mock_ldap.add_test_user("disabled", account_control=512 | 0x2)
    mock_ldap.add_test_user("locked", lockout=133497216000000000)
    mock_ldap.add_test_user("both", account_control=0x202, lockout=1)
    mock_ldap.add_test_user("nameless", account_control=0)
    verifier = factory.create_credential_verifier()

    with pytest.raises(AuthError) as excinfo:
        await verifier.verify("disabled", TEST_PASSWORD)
    assert excinfo.value.reason == AuthFailure.account_disabled
    with pytest.raises(AuthError) as excinfo:
        await verifier.verify("locked", TEST_PASSWORD)
    assert excinfo.value.reason == AuthFailure.account_locked

    # Disabled takes precedence over locked.
    with pytest.raises(AuthError) as excinfo:
        await verifier.verify("both", TEST_PASSWORD)
    assert excinfo.value.reason == AuthFailure.account_disabled

    identity = await verifier.verify("nameless", TEST_PASSWORD)
    assert not identity.disabled
    assert identity.name == "nameless"


@pytest.mark.asyncio
async def test_verify_not_found(
    factory: Factory, mock_ldap: MockLDAP
) -> None:
    mock_ldap.add_test_user("outside", base_dn="OU=Other,DC=example,DC=com")
    verifier = factory.create_credential_verifier()

    with pytest.raises(AuthError) as excinfo:
        await verifier.verify("outside", TEST_PASSWORD)
    assert excinfo.value.reason == AuthFailure.user_not_found
    assert mock_ldap.binds == ["outside@example.com"]


@pytest.mark.asyncio
async def test_verify_unavailable(
    factory: Factory, mock_ldap: MockLDAP
) -> None:
    mock_ldap.add_test_user("jdoe")
    verifier = factory.create_credential_verifier()

    mock_ldap.connect_error = LDAPConnectionError("Can't contact server")
    with pytest.raises(AuthError) as excinfo:
        await verifier.verify("jdoe", TEST_PASSWORD)
    assert excinfo.value.reason == AuthFailure.directory_unavailable

    mock_ldap.connect_error = None
    mock_ldap.bind_error = LDAPTimeoutError("Timed out")
    with pytest.raises(AuthError) as excinfo:
        await verifier.verify("jdoe", TEST_PASSWORD)
    assert excinfo.value.reason == AuthFailure.directory_unavailable

    mock_ldap.bind_error = None
    mock_ldap.search_error = LDAPTimeoutError("Timed out")
    with pytest.raises(AuthError) as excinfo:
        await verifier.verify("jdoe", TEST_PASSWORD)
    assert excinfo.value.reason == AuthFailure.directory_unavailable
    assert mock_ldap.open_connections == 0
