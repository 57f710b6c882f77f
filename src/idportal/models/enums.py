"""Enums used in idportal models and exceptions.

Notes
-----
These are kept in a separate module because both the exceptions and the ORM
schema refer to them, and neither should have to import the other.
"""

from __future__ import annotations

from enum import Enum

from bonsai import LDAPModOp

__all__ = [
    "AuditAction",
    "AuthFailure",
    "BindFailure",
    "CheckFailure",
    "ModifyFailure",
    "ModifyOperation",
    "SearchFailure",
    "WriteFailure",
]


class AuditAction(Enum):
    """Type of action recorded in the audit log."""

    login = "login"
    recovery_email_set = "recovery_email_set"
    recovery_email_updated = "recovery_email_updated"
    password_changed = "password_changed"
    photo_updated = "photo_updated"


class ModifyOperation(Enum):
    """Type of change to an attribute in an LDAP modify request."""

    add = "add"
    delete = "delete"
    replace = "replace"

    def to_bonsai(self) -> LDAPModOp:
        """Convert to the corresponding bonsai modification type."""
        match self:
            case ModifyOperation.add:
                return LDAPModOp.ADD
            case ModifyOperation.delete:
                return LDAPModOp.DELETE
            case ModifyOperation.replace:
                return LDAPModOp.REPLACE


class BindFailure(Enum):
    """Reason why an LDAP bind failed."""

    invalid_credentials = "invalid_credentials"
    """The server rejected the DN and password."""

    server_unavailable = "server_unavailable"
    """The server could not be reached or did not answer in time."""

    other = "other"


class SearchFailure(Enum):
    """Reason why an LDAP search failed."""

    timeout = "timeout"
    """The search did not complete within its time limit."""

    size_limit = "size_limit"
    """More entries matched than the requested result cap."""

    other = "other"


class ModifyFailure(Enum):
    """Reason why an LDAP modify failed."""

    not_found = "not_found"
    constraint_violation = "constraint_violation"
    """The server rejected the new values, usually for password policy."""

    permission_denied = "permission_denied"
    timeout = "timeout"
    other = "other"


class AuthFailure(Enum):
    """Reason why user authentication failed."""

    invalid_credentials = "invalid_credentials"
    user_not_found = "user_not_found"
    account_disabled = "account_disabled"
    account_locked = "account_locked"
    directory_unavailable = "directory_unavailable"
    other = "other"


class WriteFailure(Enum):
    """Reason why a change to a directory entry failed."""

    unauthorized = "unauthorized"
    """The caller may not change this entry or the service bind failed."""

    user_not_found = "user_not_found"
    old_secret_invalid = "old_secret_invalid"
    constraint_violation = "constraint_violation"
    directory_unavailable = "directory_unavailable"
    other = "other"


class CheckFailure(Enum):
    """Reason why a user existence check failed."""

    directory_unavailable = "directory_unavailable"
