"""Representation of user profiles and the audit log."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from safir.datetime import current_datetime
from safir.pydantic import UtcDatetime

from .enums import AuditAction

__all__ = [
    "AuditLogEntry",
    "OnboardingRequest",
    "ProfileRecord",
    "RecoveryEmailRequest",
]


class ProfileRecord(BaseModel):
    """Locally stored profile of a user.

    The directory remains authoritative for the identity fields, which are
    refreshed on every login. Only the recovery email and the onboarding
    flag originate here.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., title="User ID", examples=["jdoe"])

    username: str = Field(
        ..., title="Username", examples=["jdoe"], min_length=1, max_length=256
    )

    email: str | None = Field(
        None, title="Primary email", examples=["jdoe@example.com"]
    )

    name: str = Field(..., title="Display name", examples=["Jane Doe"])

    dn: str = Field(..., title="Distinguished name")

    groups: list[str] = Field([], title="Group DNs")

    recovery_email: str | None = Field(
        None,
        title="Recovery email",
        description="Personal address used for account recovery",
        examples=["jane@example.org"],
    )

    onboarding_complete: bool = Field(
        False,
        title="Onboarding complete",
        description="Whether the user has set their recovery email",
    )

    created_at: UtcDatetime = Field(..., title="First login")

    updated_at: UtcDatetime = Field(..., title="Last change")

    last_login: UtcDatetime | None = Field(None, title="Last login")


class AuditLogEntry(BaseModel):
    """A record of an action taken by a user."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str = Field(
        ..., title="User ID", description="User who performed the action"
    )

    action: AuditAction = Field(..., title="Action", examples=["login"])

    details: dict[str, Any] = Field(
        {},
        title="Details",
        description="Additional information about the action",
    )

    event_time: UtcDatetime = Field(
        default_factory=current_datetime,
        title="Timestamp",
        description="When the action happened",
    )


class OnboardingRequest(BaseModel):
    """Request to complete onboarding."""

    recovery_email: str = Field(
        ...,
        title="Recovery email",
        examples=["jane@example.org"],
        max_length=320,
    )


class RecoveryEmailRequest(BaseModel):
    """Request to change the recovery email."""

    recovery_email: str = Field(
        ...,
        title="Recovery email",
        examples=["jane@example.org"],
        max_length=320,
    )
