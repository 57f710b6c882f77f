"""Service for changing directory passwords."""

from __future__ import annotations

from structlog.stdlib import BoundLogger

from ..config import Config
from ..exceptions import InvalidPasswordError
from ..models.directory import AttributeChange
from ..models.identity import VerifiedCaller
from .attributes import DirectoryAttributeWriter
from .profile import ProfileService

__all__ = ["PasswordService"]


class PasswordService:
    """Change the directory password of the logged-in user.

    Parameters
    ----------
    config
        idportal configuration.
    writer
        Writer for directory entries.
    profile_service
        Service used to record the change in the audit log.
    logger
        Logger to use.
    """

    def __init__(
        self,
        config: Config,
        writer: DirectoryAttributeWriter,
        profile_service: ProfileService,
        logger: BoundLogger,
    ) -> None:
        self._config = config
        self._writer = writer
        self._profile = profile_service
        self._logger = logger

    async def change_password(
        self,
        caller: VerifiedCaller,
        old_password: str,
        new_password: str,
        confirm_password: str,
    ) -> None:
        """Change the password of the caller.

        Parameters
        ----------
        caller
            Logged-in user.
        old_password
            Current password, verified by the directory before the change.
        new_password
            New password.
        confirm_password
            New password typed a second time.

        Raises
        ------
        InvalidPasswordError
            Raised if the new password fails local validation.
        WriteError
            Raised if the directory change failed.
        """
        if not old_password:
            msg = "Current password is required"
            raise InvalidPasswordError(msg, field="old_password")
        if not new_password:
            raise InvalidPasswordError("New password is required")
        if new_password != confirm_password:
            msg = "Passwords do not match"
            raise InvalidPasswordError(msg, field="confirm_password")
        if len(new_password) < self._config.password_min_length:
            minimum = self._config.password_min_length
            msg = f"Password must be at least {minimum} characters"
            raise InvalidPasswordError(msg)
        if len(new_password) > self._config.password_max_length:
            maximum = self._config.password_max_length
            msg = f"Password must be at most {maximum} characters"
            raise InvalidPasswordError(msg)
        if new_password == old_password:
            msg = "New password must differ from the current password"
            raise InvalidPasswordError(msg)

        change = AttributeChange.password(
            new_password, self._config.ldap.password_attr
        )
        await self._writer.apply_changes(
            caller.username, [change], caller, old_secret=old_password
        )
        await self._profile.record_password_change(caller.username)
        self._logger.info("Changed directory password")
