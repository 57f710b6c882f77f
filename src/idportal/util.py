"""General utility functions."""

from __future__ import annotations

import base64
import os

from .config import Config
from .models.identity import group_name_from_dn
from .models.session import SessionInfo
from .models.state import State

__all__ = [
    "random_128_bits",
    "session_info",
]


def random_128_bits() -> str:
    """Generate random 128 bits encoded in base64 without padding."""
    return base64.urlsafe_b64encode(os.urandom(16)).decode().rstrip("=")


def session_info(config: Config, state: State) -> SessionInfo:
    """Describe the session of a logged-in user.

    Parameters
    ----------
    config
        idportal configuration, used to determine administrators.
    state
        Session state. Must contain an identity and a CSRF token.

    Returns
    -------
    SessionInfo
        Information to return to the client.
    """
    if not state.identity or not state.csrf:
        raise ValueError("Session state has no identity")
    identity = state.identity
    groups = [group_name_from_dn(g) for g in identity.groups]
    return SessionInfo(
        id=identity.id,
        username=identity.username,
        name=identity.name,
        email=identity.email,
        groups=groups,
        admin=config.is_admin(groups),
        onboarding_complete=identity.onboarding_complete,
        csrf=state.csrf,
    )
