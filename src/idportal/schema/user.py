"""The user database table."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import SchemaBase

__all__ = ["User"]


class User(SchemaBase):
    """Local profile of a directory user."""

    __tablename__ = "user"

    id: Mapped[str] = mapped_column(String(256), primary_key=True)
    username: Mapped[str] = mapped_column(String(256), unique=True)
    email: Mapped[str | None] = mapped_column(String(320))
    name: Mapped[str] = mapped_column(String(512))
    dn: Mapped[str] = mapped_column(String(1024))
    groups: Mapped[list[str]] = mapped_column(JSON, default=list)
    recovery_email: Mapped[str | None] = mapped_column(String(320))
    onboarding_complete: Mapped[bool] = mapped_column(default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(DateTime)
    last_login: Mapped[datetime | None] = mapped_column(DateTime)
