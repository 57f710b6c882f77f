"""The audit_log database table."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ..models.enums import AuditAction
from .base import SchemaBase

__all__ = ["AuditLog"]


class AuditLog(SchemaBase):
    """Record of an action taken by a user."""

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(256), ForeignKey("user.id", ondelete="CASCADE")
    )
    action: Mapped[AuditAction] = mapped_column(Enum(AuditAction))
    details: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    event_time: Mapped[datetime] = mapped_column(DateTime)

    __table_args__ = (
        Index("audit_log_by_user", "user_id", "event_time"),
    )
