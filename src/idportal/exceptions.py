"""Exceptions for idportal."""

from __future__ import annotations

from fastapi import status
from safir.fastapi import ClientRequestError
from safir.models import ErrorLocation

from .models.enums import (
    AuthFailure,
    BindFailure,
    CheckFailure,
    ModifyFailure,
    SearchFailure,
    WriteFailure,
)

__all__ = [
    "AccountDisabledError",
    "AccountLockedError",
    "AuthError",
    "BindError",
    "CheckError",
    "ConfigError",
    "DirectoryConnectError",
    "DirectoryError",
    "DirectoryOperationError",
    "DirectoryUnavailableError",
    "InputValidationError",
    "InvalidCSRFError",
    "InvalidEmailError",
    "InvalidLoginError",
    "InvalidOldPasswordError",
    "InvalidPasswordError",
    "InvalidPhotoError",
    "ModifyError",
    "NotAuthenticatedError",
    "NotBoundError",
    "NotFoundError",
    "PasswordRejectedError",
    "PermissionDeniedError",
    "PhotoDimensionsError",
    "PhotoEncodingError",
    "PhotoTooLargeError",
    "SearchError",
    "SessionStateError",
    "WriteError",
]


class InputValidationError(ClientRequestError):
    """Represents an input validation error.

    All errors that are reported to the client with a specific message derive
    from `~safir.fastapi.ClientRequestError`, so that the message is under our
    control and never contains text from the directory server.
    """


class AccountDisabledError(InputValidationError):
    """The directory account of the user is disabled."""

    error = "account_disabled"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self) -> None:
        super().__init__("Account is disabled")


class AccountLockedError(InputValidationError):
    """The directory account of the user is locked out."""

    error = "account_locked"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self) -> None:
        super().__init__("Account is locked")


class DirectoryOperationError(InputValidationError):
    """A directory operation failed for reasons the user cannot correct."""

    error = "directory_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self) -> None:
        super().__init__("Directory operation failed")


class DirectoryUnavailableError(InputValidationError):
    """The directory server could not be reached."""

    error = "directory_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self) -> None:
        super().__init__("Directory service unavailable, try again later")


class InvalidCSRFError(InputValidationError):
    """Invalid or missing CSRF token."""

    error = "invalid_csrf"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorLocation.header, ["X-CSRF-Token"])


class InvalidEmailError(InputValidationError):
    """The provided recovery email address is not acceptable."""

    error = "invalid_email"

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorLocation.body, ["recovery_email"])


class InvalidLoginError(InputValidationError):
    """Authentication failed.

    Deliberately does not say whether the username or the password was wrong.
    """

    error = "invalid_credentials"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self) -> None:
        super().__init__("Invalid username or password")


class InvalidOldPasswordError(InputValidationError):
    """The current password supplied for a password change was wrong."""

    error = "invalid_old_password"

    def __init__(self) -> None:
        msg = "Current password is incorrect"
        super().__init__(msg, ErrorLocation.body, ["old_password"])


class InvalidPasswordError(InputValidationError):
    """The new password was rejected before reaching the directory."""

    error = "invalid_password"

    def __init__(self, message: str, field: str = "new_password") -> None:
        super().__init__(message, ErrorLocation.body, [field])


class InvalidPhotoError(InputValidationError):
    """The uploaded profile photo cannot be used."""

    error = "invalid_photo"

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorLocation.body, ["image"])


class NotAuthenticatedError(InputValidationError):
    """The request has no valid login session."""

    error = "not_authenticated"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self) -> None:
        super().__init__("Authentication required")


class NotFoundError(InputValidationError):
    """The named resource does not exist."""

    error = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class PasswordRejectedError(InputValidationError):
    """The directory rejected the new password under its password policy."""

    error = "password_rejected"

    def __init__(self) -> None:
        msg = "New password does not meet the password policy"
        super().__init__(msg, ErrorLocation.body, ["new_password"])


class PermissionDeniedError(InputValidationError):
    """The user does not have permission to perform this operation."""

    error = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN


class DirectoryError(Exception):
    """Base class for failures of LDAP protocol operations.

    Parameters
    ----------
    message
        Internal description of the failure, suitable for logging. May
        contain text returned by the LDAP server and therefore must never be
        shown to users.
    """


class DirectoryConnectError(DirectoryError):
    """Unable to establish a connection to the LDAP server."""


class BindError(DirectoryError):
    """An LDAP bind failed.

    Parameters
    ----------
    message
        Internal description of the failure.
    reason
        Classification of the failure.
    """

    def __init__(self, message: str, reason: BindFailure) -> None:
        super().__init__(message)
        self.reason = reason


class SearchError(DirectoryError):
    """An LDAP search failed.

    Parameters
    ----------
    message
        Internal description of the failure.
    reason
        Classification of the failure.
    """

    def __init__(self, message: str, reason: SearchFailure) -> None:
        super().__init__(message)
        self.reason = reason


class ModifyError(DirectoryError):
    """An LDAP modify failed.

    Parameters
    ----------
    message
        Internal description of the failure.
    reason
        Classification of the failure.
    """

    def __init__(self, message: str, reason: ModifyFailure) -> None:
        super().__init__(message)
        self.reason = reason


class SessionStateError(RuntimeError):
    """A directory session was used in a state that does not allow it.

    This indicates a programming error, such as using a session that was
    never opened or was already closed, and is never retryable.
    """


class NotBoundError(SessionStateError):
    """Search or modify attempted on a session that has not bound."""


class AuthError(Exception):
    """Verifying the credentials of a user failed.

    Parameters
    ----------
    message
        Internal description of the failure.
    reason
        Classification of the failure.
    """

    def __init__(self, message: str, reason: AuthFailure) -> None:
        super().__init__(message)
        self.reason = reason


class WriteError(Exception):
    """Changing the directory entry of a user failed.

    Parameters
    ----------
    message
        Internal description of the failure.
    reason
        Classification of the failure.
    """

    def __init__(self, message: str, reason: WriteFailure) -> None:
        super().__init__(message)
        self.reason = reason


class CheckError(Exception):
    """Checking whether a user exists in the directory failed.

    Parameters
    ----------
    message
        Internal description of the failure.
    reason
        Classification of the failure.
    """

    def __init__(
        self,
        message: str,
        reason: CheckFailure = CheckFailure.directory_unavailable,
    ) -> None:
        super().__init__(message)
        self.reason = reason


class ConfigError(Exception):
    """Required configuration is missing.

    Raised when an operation needs configuration that was optional at load
    time, such as the LDAP service account credentials. This is a deployment
    error and is never caused by user input.
    """


class PhotoEncodingError(Exception):
    """The uploaded photo could not be decoded or encoded."""


class PhotoDimensionsError(PhotoEncodingError):
    """The uploaded photo has more pixels than the configured limit."""


class PhotoTooLargeError(PhotoEncodingError):
    """The encoded thumbnail does not fit within the configured size limit."""
