"""Service for local user profiles."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from safir.datetime import current_datetime
from structlog.stdlib import BoundLogger

from ..constants import EMAIL_REGEX
from ..exceptions import InvalidEmailError, NotFoundError
from ..models.enums import AuditAction
from ..models.identity import NormalizedIdentity
from ..models.profile import AuditLogEntry, ProfileRecord
from ..storage.audit import AuditLogStore
from ..storage.profile import ProfileStore

__all__ = ["ProfileService"]


class ProfileService:
    """Manage local user profiles and record user actions.

    Parameters
    ----------
    profile_store
        Storage for user profiles.
    audit_store
        Storage for the audit log.
    logger
        Logger to use.
    """

    def __init__(
        self,
        profile_store: ProfileStore,
        audit_store: AuditLogStore,
        logger: BoundLogger,
    ) -> None:
        self._profiles = profile_store
        self._audit = audit_store
        self._logger = logger

    async def complete_onboarding(
        self, username: str, recovery_email: str, primary_email: str | None
    ) -> ProfileRecord:
        """Set the recovery email of a user and finish onboarding.

        Parameters
        ----------
        username
            Username of the user.
        recovery_email
            Recovery email address.
        primary_email
            Primary email of the user from the directory, which the recovery
            email may not match.

        Returns
        -------
        ProfileRecord
            Updated profile.

        Raises
        ------
        InvalidEmailError
            Raised if the recovery email is invalid or is the primary email.
        NotFoundError
            Raised if the user has no profile.
        """
        email = self._validate_email(recovery_email)
        if primary_email and email.lower() == primary_email.lower():
            msg = "Recovery email must differ from your primary email"
            raise InvalidEmailError(msg)
        current = await self.get_profile(username)
        now = current_datetime()
        profile = await self._profiles.set_recovery_email(
            username, email, now, complete_onboarding=True
        )
        if not profile:
            raise NotFoundError(f"User {username} not found")
        await self._add_audit(
            profile.id,
            AuditAction.recovery_email_set,
            {"recovery_email": email, "previous": current.recovery_email},
        )
        self._logger.info("Completed onboarding", user=username)
        return profile

    async def get_profile(self, username: str) -> ProfileRecord:
        """Retrieve the profile of a user.

        Raises
        ------
        NotFoundError
            Raised if the user has no profile.
        """
        profile = await self._profiles.get(username)
        if not profile:
            raise NotFoundError(f"User {username} not found")
        return profile

    async def record_login(
        self, identity: NormalizedIdentity
    ) -> ProfileRecord:
        """Refresh the profile of a user after a successful login.

        Parameters
        ----------
        identity
            Identity of the user from the directory.

        Returns
        -------
        ProfileRecord
            The stored profile.
        """
        now = current_datetime()
        profile = await self._profiles.upsert_login(identity, now)
        await self._add_audit(profile.id, AuditAction.login, {}, now)
        return profile

    async def record_password_change(self, username: str) -> None:
        """Record that a user changed their directory password.

        Called after the directory change succeeded, so a missing profile is
        logged rather than raised.
        """
        await self._record_change(username, AuditAction.password_changed, {})

    async def record_photo_update(self, username: str, size: int) -> None:
        """Record that a user changed their profile photo.

        Called after the directory change succeeded, so a missing profile is
        logged rather than raised.
        """
        details = {"thumbnail_size": size}
        await self._record_change(username, AuditAction.photo_updated, details)

    async def update_recovery_email(
        self, username: str, recovery_email: str
    ) -> ProfileRecord:
        """Change the recovery email of a user.

        Raises
        ------
        InvalidEmailError
            Raised if the recovery email is invalid or is the primary email.
        NotFoundError
            Raised if the user has no profile.
        """
        email = self._validate_email(recovery_email)
        current = await self.get_profile(username)
        if current.email and email.lower() == current.email.lower():
            msg = "Recovery email must differ from your primary email"
            raise InvalidEmailError(msg)
        profile = await self._profiles.set_recovery_email(
            username, email, current_datetime()
        )
        if not profile:
            raise NotFoundError(f"User {username} not found")
        await self._add_audit(
            profile.id,
            AuditAction.recovery_email_updated,
            {"recovery_email": email, "previous": current.recovery_email},
        )
        return profile

    async def _add_audit(
        self,
        user_id: str,
        action: AuditAction,
        details: dict[str, Any],
        event_time: datetime | None = None,
    ) -> None:
        entry = AuditLogEntry(
            user_id=user_id,
            action=action,
            details=details,
            event_time=event_time or current_datetime(),
        )
        await self._audit.add(entry)

    async def _record_change(
        self, username: str, action: AuditAction, details: dict[str, Any]
    ) -> None:
        profile = await self._profiles.get(username)
        if not profile:
            self._logger.warning(
                "No profile for directory change, not auditing",
                user=username,
                action=action.value,
            )
            return
        await self._add_audit(profile.id, action, details)

    def _validate_email(self, email: str) -> str:
        email = email.strip()
        if not email:
            raise InvalidEmailError("Recovery email is required")
        if not re.match(EMAIL_REGEX, email):
            raise InvalidEmailError("Invalid email address")
        return email
