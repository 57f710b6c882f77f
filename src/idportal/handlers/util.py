"""Conversion of internal failures into client errors."""

from __future__ import annotations

from safir.fastapi import ClientRequestError

from ..exceptions import (
    AccountDisabledError,
    AccountLockedError,
    AuthError,
    DirectoryOperationError,
    DirectoryUnavailableError,
    InvalidLoginError,
    InvalidOldPasswordError,
    NotFoundError,
    PermissionDeniedError,
    WriteError,
)
from ..models.enums import AuthFailure, WriteFailure

__all__ = ["auth_error_to_client", "write_error_to_client"]


def auth_error_to_client(error: AuthError) -> ClientRequestError:
    """Convert a login failure into the error returned to the client.

    Unknown users and wrong passwords produce the same error.
    """
    match error.reason:
        case AuthFailure.invalid_credentials | AuthFailure.user_not_found:
            return InvalidLoginError()
        case AuthFailure.account_disabled:
            return AccountDisabledError()
        case AuthFailure.account_locked:
            return AccountLockedError()
        case AuthFailure.directory_unavailable:
            return DirectoryUnavailableError()
        case _:
            return DirectoryOperationError()


def write_error_to_client(
    error: WriteError, rejected: ClientRequestError
) -> ClientRequestError:
    """Convert a failed directory change into the error returned to the client.

    Parameters
    ----------
    error
        The failure.
    rejected
        Error to return if the directory rejected the new values.

    Returns
    -------
    ClientRequestError
        Error to raise. Its message never includes text from the server.
    """
    match error.reason:
        case WriteFailure.unauthorized:
            return PermissionDeniedError("Permission denied")
        case WriteFailure.user_not_found:
            return NotFoundError("User not found in directory")
        case WriteFailure.old_secret_invalid:
            return InvalidOldPasswordError()
        case WriteFailure.constraint_violation:
            return rejected
        case WriteFailure.directory_unavailable:
            return DirectoryUnavailableError()
        case _:
            return DirectoryOperationError()
