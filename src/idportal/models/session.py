"""Models for the login and session routes."""

from __future__ import annotations

from pydantic import BaseModel, Field

__all__ = [
    "LoginRequest",
    "PasswordChangeRequest",
    "PhotoResponse",
    "SessionInfo",
    "UserCheckRequest",
    "UserCheckResponse",
]


class LoginRequest(BaseModel):
    """Credentials submitted at login."""

    username: str = Field(
        ...,
        title="Username",
        description=(
            "Username, user principal name, or down-level logon name of the"
            " user"
        ),
        examples=["jdoe"],
        max_length=256,
    )

    password: str = Field(..., title="Password", max_length=1024)


class SessionInfo(BaseModel):
    """Information about the logged-in user."""

    id: str = Field(..., title="User ID", examples=["jdoe"])

    username: str = Field(..., title="Username", examples=["jdoe"])

    name: str = Field(..., title="Display name", examples=["Jane Doe"])

    email: str | None = Field(
        None, title="Email address", examples=["jdoe@example.com"]
    )

    groups: list[str] = Field([], title="Group names", examples=[["Staff"]])

    admin: bool = Field(
        False,
        title="Administrator",
        description="Whether the user is a member of an administrator group",
    )

    onboarding_complete: bool = Field(
        ..., title="Whether the user has completed onboarding"
    )

    csrf: str = Field(
        ...,
        title="CSRF token",
        description=(
            "Token that must be sent in the ``X-CSRF-Token`` header of all"
            " state-changing requests"
        ),
        examples=["OmNdVTtKKuK_VuJsGFdrqg"],
    )


class PasswordChangeRequest(BaseModel):
    """Request to change the directory password."""

    old_password: str = Field(..., title="Current password", max_length=1024)

    new_password: str = Field(..., title="New password", max_length=1024)

    confirm_password: str = Field(
        ..., title="New password again", max_length=1024
    )


class PhotoResponse(BaseModel):
    """Result of a profile photo update."""

    thumbnail: str = Field(
        ...,
        title="Thumbnail",
        description="The stored thumbnail as a ``data:`` URI",
        examples=["data:image/jpeg;base64,/9j/4AAQSkZJRg..."],
    )


class UserCheckRequest(BaseModel):
    """Request to check whether a user exists in the directory."""

    username: str = Field(
        ..., title="Username", examples=["jdoe"], min_length=1, max_length=256
    )


class UserCheckResponse(BaseModel):
    """Whether a user exists in the directory."""

    username: str = Field(..., title="Username", examples=["jdoe"])

    exists: bool = Field(..., title="Whether the user exists")
