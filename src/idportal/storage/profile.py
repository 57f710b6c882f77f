"""Storage for user profiles."""

from __future__ import annotations

from datetime import datetime

from safir.database import datetime_from_db, datetime_to_db
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.identity import NormalizedIdentity
from ..models.profile import ProfileRecord
from ..schema import User as SQLUser

__all__ = ["ProfileStore"]


class ProfileStore:
    """Stores and retrieves local user profiles.

    Parameters
    ----------
    session
        The database session.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, username: str) -> ProfileRecord | None:
        """Retrieve the profile of a user.

        Parameters
        ----------
        username
            Username of the user.

        Returns
        -------
        ProfileRecord or None
            The profile, or `None` if the user has never logged in.
        """
        user = await self._get_user(username)
        return self._to_record(user) if user else None

    async def set_recovery_email(
        self,
        username: str,
        recovery_email: str,
        now: datetime,
        *,
        complete_onboarding: bool = False,
    ) -> ProfileRecord | None:
        """Change the recovery email of a user.

        Parameters
        ----------
        username
            Username of the user.
        recovery_email
            New recovery email.
        now
            Time of the change.
        complete_onboarding
            Whether to also mark onboarding as complete.

        Returns
        -------
        ProfileRecord or None
            The updated profile, or `None` if the user was not found.
        """
        user = await self._get_user(username)
        if not user:
            return None
        user.recovery_email = recovery_email
        if complete_onboarding:
            user.onboarding_complete = True
        user.updated_at = datetime_to_db(now)
        await self._session.flush()
        return self._to_record(user)

    async def upsert_login(
        self, identity: NormalizedIdentity, now: datetime
    ) -> ProfileRecord:
        """Create or refresh the profile of a user who just logged in.

        The identity fields are copied from the directory. The recovery email
        and onboarding flag of an existing profile are preserved.

        Parameters
        ----------
        identity
            Identity of the user from the directory.
        now
            Time of the login.

        Returns
        -------
        ProfileRecord
            The stored profile.
        """
        db_now = datetime_to_db(now)
        user = await self._get_user(identity.username)
        if not user:
            user = SQLUser(
                id=identity.id,
                username=identity.username,
                onboarding_complete=False,
                created_at=db_now,
            )
            self._session.add(user)
        user.email = identity.email
        user.name = identity.name
        user.dn = identity.dn
        user.groups = list(identity.groups)
        user.updated_at = db_now
        user.last_login = db_now
        await self._session.flush()
        return self._to_record(user)

    async def _get_user(self, username: str) -> SQLUser | None:
        stmt = select(SQLUser).where(SQLUser.username == username)
        return await self._session.scalar(stmt)

    @staticmethod
    def _to_record(user: SQLUser) -> ProfileRecord:
        return ProfileRecord(
            id=user.id,
            username=user.username,
            email=user.email,
            name=user.name,
            dn=user.dn,
            groups=list(user.groups or []),
            recovery_email=user.recovery_email,
            onboarding_complete=user.onboarding_complete,
            created_at=datetime_from_db(user.created_at),
            updated_at=datetime_from_db(user.updated_at),
            last_login=datetime_from_db(user.last_login),
        )
