"""Data models for LDAP directory operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Self

from ..constants import LDAP_CONNECT_TIMEOUT, LDAP_TIMEOUT
from .enums import ModifyOperation

__all__ = [
    "AttributeChange",
    "AttributeValue",
    "DirectoryEndpoint",
    "DirectoryEntry",
    "encode_ad_password",
]

type AttributeValue = str | bytes
"""Type of a single value of an LDAP attribute."""


def encode_ad_password(password: str) -> bytes:
    """Encode a password in the form Active Directory expects.

    Active Directory only accepts writes to ``unicodePwd`` whose value is the
    password surrounded by double quotes and encoded in UTF-16LE.

    Parameters
    ----------
    password
        The new password.

    Returns
    -------
    bytes
        The encoded attribute value.
    """
    return f'"{password}"'.encode("utf-16-le")


@dataclass(frozen=True, slots=True)
class DirectoryEndpoint:
    """Connection target for LDAP sessions."""

    url: str
    """LDAP URL of the server (``ldap`` or ``ldaps`` scheme)."""

    verify_certificate: bool = True
    """Whether to verify the TLS certificate of the server."""

    connect_timeout: float = LDAP_CONNECT_TIMEOUT
    """Timeout (in seconds) for establishing a connection and binding."""

    timeout: float = LDAP_TIMEOUT
    """Timeout (in seconds) for each search or modify."""


@dataclass(frozen=True, slots=True)
class AttributeChange:
    """A single change to an attribute of an LDAP entry.

    A list of changes is sent to the server in one modify request, which
    applies all of them or none of them.
    """

    attribute: str
    """Name of the attribute to change."""

    operation: ModifyOperation
    """Type of change."""

    values: tuple[AttributeValue, ...] = ()
    """New values of the attribute (or values to add or delete)."""

    @classmethod
    def replace(cls, attribute: str, *values: AttributeValue) -> Self:
        """Create a change replacing all values of an attribute.

        Parameters
        ----------
        attribute
            Name of the attribute.
        *values
            New values. If none are given, the attribute will be removed.

        Returns
        -------
        AttributeChange
            The corresponding change.
        """
        return cls(attribute, ModifyOperation.replace, tuple(values))

    @classmethod
    def password(
        cls, new_password: str, attribute: str = "unicodePwd"
    ) -> Self:
        """Create a change setting the password of an Active Directory user.

        Parameters
        ----------
        new_password
            The new password in clear text.
        attribute
            Name of the password attribute.

        Returns
        -------
        AttributeChange
            Replace change with the password encoded by `encode_ad_password`.
        """
        value = encode_ad_password(new_password)
        return cls(attribute, ModifyOperation.replace, (value,))

    def __repr__(self) -> str:
        # Values may hold secrets or large binary data, so never show them.
        return (
            f"AttributeChange(attribute={self.attribute!r},"
            f" operation={self.operation.value}, values=<{len(self.values)}>)"
        )


@dataclass(slots=True)
class DirectoryEntry:
    """An entry returned by an LDAP search.

    Attribute names in LDAP are case-insensitive, so lookups through `get` and
    `first` ignore case. Only the attributes returned by the server are
    present.
    """

    dn: str
    """Distinguished name of the entry."""

    attributes: dict[str, list[AttributeValue]] = field(default_factory=dict)
    """Attribute values keyed by attribute name as returned by the server."""

    def get(self, name: str) -> list[AttributeValue]:
        """Return all values of an attribute.

        Parameters
        ----------
        name
            Name of the attribute, in any case.

        Returns
        -------
        list of str or bytes
            Values of the attribute, or an empty list if it is absent.
        """
        wanted = name.lower()
        for key, values in self.attributes.items():
            if key.lower() == wanted:
                return values
        return []

    def first(self, name: str) -> AttributeValue | None:
        """Return the first value of an attribute, if any.

        Parameters
        ----------
        name
            Name of the attribute, in any case.

        Returns
        -------
        str or bytes or None
            First value of the attribute, or `None` if it is absent.
        """
        values = self.get(name)
        return values[0] if values else None
