"""Authentication dependencies for FastAPI."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header

from ..exceptions import InvalidCSRFError, NotAuthenticatedError
from ..models.state import SessionIdentity
from .context import RequestContext, context_dependency

__all__ = [
    "Authenticate",
    "AuthenticateRead",
    "AuthenticateWrite",
]


class Authenticate:
    """Dependency to verify user authentication.

    Users authenticate with the session cookie set at login. This is a base
    class for `AuthenticateRead` and `AuthenticateWrite`, which provide
    ``__call__`` implementations that do the work.
    """

    async def authenticate(
        self, context: RequestContext, x_csrf_token: str | None = None
    ) -> SessionIdentity:
        """Authenticate the request.

        Parameters
        ----------
        context
            The request context.
        x_csrf_token
            CSRF token from the request headers, if any. Only checked by
            `AuthenticateWrite`.

        Returns
        -------
        SessionIdentity
            Identity of the logged-in user.

        Raises
        ------
        InvalidCSRFError
            Raised if the request requires CSRF protection and the token is
            missing or wrong.
        NotAuthenticatedError
            Raised if the request has no valid session.
        """
        identity = context.state.identity
        if not identity:
            raise NotAuthenticatedError()
        context.rebind_logger(user=identity.username)
        return identity

    def _verify_csrf(
        self, context: RequestContext, x_csrf_token: str | None
    ) -> None:
        """Check the provided CSRF token is correct.

        Raises
        ------
        InvalidCSRFError
            Raised if no CSRF token was provided or if it was incorrect, and
            the method was something other than GET or OPTIONS.
        """
        if context.request.method in ("GET", "OPTIONS"):
            return
        error = None
        if not x_csrf_token:
            error = "CSRF token required in X-CSRF-Token header"
        elif x_csrf_token != context.state.csrf:
            error = "Invalid CSRF token"
        if error:
            context.logger.error("CSRF verification failed", error=error)
            raise InvalidCSRFError(error)


class AuthenticateRead(Authenticate):
    """Authenticate a read API.

    Should be used as a FastAPI dependency.
    """

    async def __call__(
        self,
        *,
        context: Annotated[RequestContext, Depends(context_dependency)],
    ) -> SessionIdentity:
        return await self.authenticate(context)


class AuthenticateWrite(Authenticate):
    """Authenticate a write API.

    Should be used as a FastAPI dependency.
    """

    async def __call__(
        self,
        *,
        x_csrf_token: Annotated[
            str | None,
            Header(
                title="CSRF token",
                description="Token returned by the login route",
                examples=["OmNdVTtKKuK_VuJsGFdrqg"],
            ),
        ] = None,
        context: Annotated[RequestContext, Depends(context_dependency)],
    ) -> SessionIdentity:
        identity = await self.authenticate(context)
        self._verify_csrf(context, x_csrf_token)
        return identity
