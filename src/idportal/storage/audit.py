"""Storage for the audit log."""

from __future__ import annotations

from safir.database import datetime_from_db, datetime_to_db
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.profile import AuditLogEntry
from ..schema import AuditLog

__all__ = ["AuditLogStore"]


class AuditLogStore:
    """Stores and retrieves the audit log of user actions.

    Parameters
    ----------
    session
        The database session.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, entry: AuditLogEntry) -> None:
        """Record an action.

        Parameters
        ----------
        entry
            The action to record.
        """
        new = AuditLog(**entry.model_dump())
        new.event_time = datetime_to_db(entry.event_time)
        self._session.add(new)

    async def list(
        self, user_id: str, *, limit: int | None = None
    ) -> list[AuditLogEntry]:
        """Return the recorded actions of a user, most recent first.

        Parameters
        ----------
        user_id
            User whose actions to return.
        limit
            Maximum number of entries to return.

        Returns
        -------
        list of AuditLogEntry
            Recorded actions.
        """
        stmt = (
            select(AuditLog)
            .where(AuditLog.user_id == user_id)
            .order_by(AuditLog.event_time.desc(), AuditLog.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self._session.scalars(stmt)
        return [
            AuditLogEntry(
                user_id=e.user_id,
                action=e.action,
                details=e.details or {},
                event_time=datetime_from_db(e.event_time),
            )
            for e in result.all()
        ]
