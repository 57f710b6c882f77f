"""Projection of LDAP entries into user identities."""

from __future__ import annotations

from .config import LDAPConfig
from .constants import ACCOUNT_DISABLED_FLAG
from .exceptions import AuthError
from .models.directory import AttributeValue, DirectoryEntry
from .models.enums import AuthFailure
from .models.identity import NormalizedIdentity

__all__ = ["IdentityProjection"]


def _to_str(value: AttributeValue | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _to_int(value: AttributeValue | None) -> int | None:
    text = _to_str(value)
    if text is None:
        return None
    try:
        return int(text.strip())
    except ValueError:
        return None


class IdentityProjection:
    """Convert raw LDAP entries into `NormalizedIdentity` objects.

    The mapping is pure: it performs no I/O and keeps no state between calls.

    Parameters
    ----------
    config
        LDAP configuration naming the attributes to read.
    """

    def __init__(self, config: LDAPConfig) -> None:
        self._config = config

    def project(self, entry: DirectoryEntry) -> NormalizedIdentity:
        """Build the identity of a user from their LDAP entry.

        Parameters
        ----------
        entry
            Entry of the user, with the attributes listed in
            `~idportal.config.LDAPConfig.identity_attributes`.

        Returns
        -------
        NormalizedIdentity
            Identity of the user. Missing optional attributes are left empty,
            and the display name falls back to the username.

        Raises
        ------
        AuthError
            Raised if the entry has no username.
        """
        username = _to_str(entry.first(self._config.username_attr))
        if not username:
            msg = f"Entry {entry.dn} has no {self._config.username_attr}"
            raise AuthError(msg, AuthFailure.other)

        name = _to_str(entry.first(self._config.name_attr)) or username
        email = _to_str(entry.first(self._config.email_attr)) or None
        groups = [
            g
            for g in (_to_str(v) for v in entry.get(self._config.group_attr))
            if g
        ]

        control = _to_int(entry.first(self._config.account_control_attr))
        disabled = control is not None and bool(
            control & ACCOUNT_DISABLED_FLAG
        )
        lockout = _to_int(entry.first(self._config.lockout_attr))
        locked = bool(lockout is not None and lockout > 0)

        photo = entry.first(self._config.thumbnail_attr)
        if isinstance(photo, str):
            photo = photo.encode()

        return NormalizedIdentity(
            id=username,
            username=username,
            email=email,
            name=name,
            dn=entry.dn,
            groups=groups,
            disabled=disabled,
            locked=locked,
            photo=photo or None,
        )
