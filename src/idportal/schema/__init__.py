"""All database schema objects."""

from __future__ import annotations

from .audit_log import AuditLog
from .base import SchemaBase
from .user import User

__all__ = [
    "AuditLog",
    "SchemaBase",
    "User",
]
