"""Representation of an authenticated directory user."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

__all__ = [
    "NormalizedIdentity",
    "VerifiedCaller",
    "group_name_from_dn",
]

_CN_REGEX = re.compile(r"^CN=((?:\\.|[^,\\])+)", re.IGNORECASE)


def group_name_from_dn(dn: str) -> str:
    """Extract the short name of a group from its DN.

    Parameters
    ----------
    dn
        DN of the group, such as ``CN=Staff,OU=Groups,DC=example,DC=com``.

    Returns
    -------
    str
        The value of the leading ``CN`` component, or the DN unchanged if it
        does not start with one.
    """
    match = _CN_REGEX.match(dn)
    if not match:
        return dn
    return re.sub(r"\\(.)", r"\1", match.group(1))


class NormalizedIdentity(BaseModel):
    """A user as seen by the rest of the application.

    Built from the raw LDAP entry by
    `~idportal.projection.IdentityProjection` after a successful
    authentication and never cached.
    """

    id: str = Field(
        ...,
        title="User ID",
        description="Stable identifier of the user",
        examples=["jdoe"],
    )

    username: str = Field(
        ..., title="Username", examples=["jdoe"], min_length=1
    )

    email: str | None = Field(
        None, title="Email address", examples=["jdoe@example.com"]
    )

    name: str = Field(..., title="Display name", examples=["Jane Doe"])

    dn: str = Field(
        ...,
        title="Distinguished name",
        examples=["CN=Jane Doe,OU=Staff,DC=example,DC=com"],
    )

    groups: list[str] = Field(
        [],
        title="Group DNs",
        description=(
            "DNs of the groups of which the user is a member. The order is"
            " the order returned by the server and carries no meaning."
        ),
    )

    disabled: bool = Field(False, title="Whether the account is disabled")

    locked: bool = Field(False, title="Whether the account is locked out")

    photo: bytes | None = Field(
        None, title="Thumbnail photo", exclude=True, repr=False
    )

    @property
    def group_names(self) -> list[str]:
        """Short names of the groups of the user."""
        return [group_name_from_dn(g) for g in self.groups]


class VerifiedCaller(BaseModel):
    """Identity of the logged-in user making a request.

    This comes from the encrypted session cookie and was established by an
    earlier successful authentication.
    """

    username: str = Field(..., title="Username", min_length=1)

    dn: str = Field(..., title="Distinguished name")
