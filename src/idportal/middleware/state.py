"""Encrypted session cookie middleware."""

from __future__ import annotations

import copy
from abc import ABCMeta, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Self, override

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..config import CookieParameters

__all__ = [
    "BaseState",
    "StateMiddleware",
]


class BaseState(metaclass=ABCMeta):
    """Base class for session state stored in an encrypted cookie.

    Subclasses must be dataclasses, since the middleware compares the state
    before and after the request to decide whether to write the cookie.
    """

    @classmethod
    @abstractmethod
    async def from_cookie(cls, cookie: str, request: Request) -> Self:
        """Reconstruct state from an encrypted cookie.

        Invalid or expired cookies produce empty state rather than an error.
        """

    @abstractmethod
    def is_empty(self) -> bool:
        """Whether the state holds nothing worth storing."""

    @abstractmethod
    def to_cookie(self) -> str:
        """Encrypt the state for storage in a cookie."""


class StateMiddleware[T: BaseState](BaseHTTPMiddleware):
    """Read the session cookie into ``request.state.cookie`` and write it back.

    After the handler runs, the cookie is rewritten if the state changed, or
    deleted if the state is now empty (after logout, for example). This
    middleware must run after
    `~safir.middleware.x_forwarded.XForwardedMiddleware`.

    Parameters
    ----------
    app
        The ASGI application.
    cookie_name
        Name of the session cookie.
    state_class
        Class used to parse and serialize the cookie.
    parameters
        Parameters for the cookie.
    """

    def __init__(
        self,
        app: FastAPI,
        *,
        cookie_name: str,
        state_class: type[T],
        parameters: CookieParameters,
    ) -> None:
        super().__init__(app)
        self._cookie_name = cookie_name
        self._state_class = state_class
        self._parameters = parameters

    @override
    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        cookie = request.cookies.get(self._cookie_name)
        if cookie:
            state = await self._state_class.from_cookie(cookie, request)
        else:
            state = self._state_class()

        # Handlers get a copy so that changes can be detected afterwards.
        request.state.cookie = copy.copy(state)
        response = await call_next(request)

        new_state: T = request.state.cookie
        if new_state.is_empty():
            if cookie:
                response.delete_cookie(
                    self._cookie_name,
                    domain=self._parameters.get("domain"),
                    secure=self._parameters["secure"],
                    httponly=self._parameters["httponly"],
                )
        elif new_state != state:
            value = new_state.to_cookie()
            response.set_cookie(self._cookie_name, value, **self._parameters)
        return response
