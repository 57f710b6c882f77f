"""Tests for projection of LDAP entries into identities."""

from __future__ import annotations

import pytest

from idportal.config import Config
from idportal.exceptions import AuthError
from idportal.models.directory import DirectoryEntry
from idportal.models.enums import AuthFailure
from idportal.projection import IdentityProjection

DN = "CN=Jane Doe,CN=Users,DC=example,DC=com"


def test_project(config: Config) -> None:
    projection = IdentityProjection(config.ldap)
    entry = DirectoryEntry(
        dn=DN,
        attributes={
            "sAMAccountName": ["jdoe"],
            "displayName": ["Jane Doe"],
            "mail": ["jane.doe@example.com"],
            "memberOf": [
                "CN=Staff,OU=Groups,DC=example,DC=com",
                b"CN=Engineering,OU=Groups,DC=example,DC=com",
                "",
            ],
            "userAccountControl": ["512"],
            "lockoutTime": ["0"],
            "thumbnailPhoto": [b"\xff\xd8\xff\xe0"],
        },
    )

    identity = projection.project(entry)

    assert identity.id == "jdoe"
    assert identity.username == "jdoe"
    assert identity.name == "Jane Doe"
    assert identity.email == "jane.doe@example.com"
    assert identity.dn == DN
    assert identity.groups == [
        "CN=Staff,OU=Groups,DC=example,DC=com",
        "CN=Engineering,OU=Groups,DC=example,DC=com",
    ]
    assert identity.group_names == ["Staff", "Engineering"]
    assert not identity.disabled
    assert not identity.locked
    assert identity.photo == b"\xff\xd8\xff\xe0"

    # The photo is never serialized.
    assert "photo" not in identity.model_dump()


def test_project_minimal(config: Config) -> None:
    projection = IdentityProjection(config.ldap)

    # Attribute names are matched case-insensitively.
    entry = DirectoryEntry(dn=DN, attributes={"samaccountname": [b"jdoe"]})
    identity = projection.project(entry)
    assert identity.username == "jdoe"
    assert identity.name == "jdoe"
    assert identity.email is None
    assert identity.groups == []
    assert not identity.disabled
    assert not identity.locked
    assert identity.photo is None


def test_account_flags(config: Config) -> None:
    projection = IdentityProjection(config.ldap)

    def project(control: str, lockout: str) -> tuple[bool, bool]:
        entry = DirectoryEntry(
            dn=DN,
            attributes={
                "sAMAccountName": ["jdoe"],
                "userAccountControl": [control],
                "lockoutTime": [lockout],
            },
        )
        identity = projection.project(entry)
        return (identity.disabled, identity.locked)

    assert project("514", "0") == (True, False)
    assert project("512", "133497216000000000") == (False, True)
    assert project("66050", "5") == (True, True)

    # Values that are not numbers are ignored.
    assert project("garbage", "never") == (False, False)
    assert project("", "") == (False, False)


def test_no_username(config: Config) -> None:
    projection = IdentityProjection(config.ldap)
    entry = DirectoryEntry(dn=DN, attributes={"displayName": ["Jane Doe"]})
    with pytest.raises(AuthError) as excinfo:
        projection.project(entry)
    assert excinfo.value.reason == AuthFailure.other
