"""Representation of idportal state stored in a cookie.

This is the idportal version of `~idportal.middleware.state.BaseState`, used
by the `~idportal.middleware.state.StateMiddleware` middleware. It holds the
identity of the logged-in user and the CSRF token.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Self

from cryptography.fernet import Fernet, InvalidToken
from fastapi import Request
from safir.datetime import current_datetime
from safir.dependencies.logger import logger_dependency

from ..dependencies.config import config_dependency
from ..middleware.state import BaseState
from .identity import VerifiedCaller

__all__ = ["SessionIdentity", "State"]


@dataclass
class SessionIdentity:
    """Identity of the logged-in user as stored in the session cookie."""

    id: str
    username: str
    name: str
    dn: str
    email: str | None = None
    groups: list[str] = field(default_factory=list)
    onboarding_complete: bool = False


@dataclass
class State(BaseState):
    """State information stored in a cookie."""

    csrf: str | None = None
    """CSRF token for state-changing requests."""

    identity: SessionIdentity | None = None
    """Identity of the user if they are logged in."""

    login_time: datetime | None = None
    """When the user logged in."""

    @classmethod
    async def from_cookie(
        cls, cookie: str, request: Request | None = None
    ) -> Self:
        """Reconstruct state from an encrypted cookie.

        Parameters
        ----------
        cookie
            The encrypted cookie value.
        request
            The request, used for logging. If not provided (primarily for the
            test suite), invalid state cookies will not be logged.

        Returns
        -------
        State
            The state represented by the cookie. If the cookie is invalid or
            the login has expired, this will be empty state.
        """
        config = await config_dependency()
        fernet = Fernet(config.session_secret.get_secret_value().encode())
        try:
            data = json.loads(fernet.decrypt(cookie.encode()).decode())
            identity = None
            login_time = None
            if data.get("identity"):
                identity = SessionIdentity(**data["identity"])
                login_time = datetime.fromtimestamp(data["login_time"], tz=UTC)
        except (InvalidToken, KeyError, TypeError, ValueError) as e:
            if request:
                logger = await logger_dependency(request)
                error = type(e).__name__
                if str(e):
                    error += f": {e!s}"
                logger.warning("Discarding invalid state cookie", error=error)
            return cls()

        now = current_datetime()
        lifetime = config.session_lifetime
        if identity and login_time and now - login_time > lifetime:
            if request:
                logger = await logger_dependency(request)
                logger.info(
                    "Discarding expired session", user=identity.username
                )
            return cls()
        csrf = data.get("csrf")
        return cls(csrf=csrf, identity=identity, login_time=login_time)

    @property
    def caller(self) -> VerifiedCaller | None:
        """The logged-in user as a caller of directory operations."""
        if not self.identity:
            return None
        username = self.identity.username
        return VerifiedCaller(username=username, dn=self.identity.dn)

    def is_empty(self) -> bool:
        return not self.csrf and not self.identity

    def to_cookie(self) -> str:
        """Build an encrypted cookie representation of the state.

        Returns
        -------
        str
            The encrypted cookie value.
        """
        data: dict[str, Any] = {}
        if self.csrf:
            data["csrf"] = self.csrf
        if self.identity:
            data["identity"] = {
                "id": self.identity.id,
                "username": self.identity.username,
                "name": self.identity.name,
                "dn": self.identity.dn,
                "email": self.identity.email,
                "groups": self.identity.groups,
                "onboarding_complete": self.identity.onboarding_complete,
            }
            login_time = self.login_time or current_datetime()
            data["login_time"] = login_time.timestamp()

        config = config_dependency.config()
        fernet = Fernet(config.session_secret.get_secret_value().encode())
        return fernet.encrypt(json.dumps(data).encode()).decode()
