"""Application definition for idportal."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from importlib.metadata import version

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from safir.fastapi import ClientRequestError, client_request_error_handler
from safir.logging import configure_uvicorn_logging
from safir.middleware.x_forwarded import XForwardedMiddleware
from safir.models import ErrorModel

from .constants import COOKIE_NAME
from .dependencies.config import config_dependency
from .dependencies.context import context_dependency
from .handlers import api, internal, login
from .middleware.state import StateMiddleware
from .models.state import State

__all__ = ["create_app", "create_openapi"]


def create_app(
    *,
    load_config: bool = True,
    extra_startup: Callable[[FastAPI], Awaitable[None]] | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    This is in a function rather than using a global variable (as is more
    typical for FastAPI) because some middleware depends on configuration
    settings and we therefore want to recreate the application between tests.

    Parameters
    ----------
    load_config
        If set to `False`, do not try to load the configuration. Configure
        `~safir.middleware.x_forwarded.XForwardedMiddleware` with the default
        set of proxy IP addresses. This is used primarily for OpenAPI
        schema generation, where constructing the app is required but the
        configuration won't matter.
    extra_startup
        If provided, an additional coroutine to run as part of the startup
        section of the lifespan context manager, used by the test suite.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        config = config_dependency.config()
        await context_dependency.initialize(config)
        if extra_startup:
            await extra_startup(app)

        yield

        await context_dependency.aclose()

    app = FastAPI(
        title="idportal",
        description=(
            "idportal is a self-service portal for users of an Active"
            " Directory domain. Users log in with their directory password,"
            " set a recovery email, change their password, and upload a"
            " profile photo."
        ),
        version=version("idportal"),
        openapi_tags=[
            {
                "name": "user",
                "description": "APIs used by logged-in users.",
            },
            {
                "name": "browser",
                "description": "Routes that manage the session cookie.",
            },
            {
                "name": "internal",
                "description": "Internal routes used by health checks.",
            },
        ],
        lifespan=lifespan,
    )

    # Add all of the routes.
    app.include_router(
        api.router,
        responses={
            401: {"description": "Unauthenticated", "model": ErrorModel},
            403: {"description": "Permission denied", "model": ErrorModel},
        },
    )
    app.include_router(internal.router)
    app.include_router(login.router)

    # Load configuration if it is available to us and configure Uvicorn
    # logging.
    config = None
    if load_config:
        config = config_dependency.config()
        configure_uvicorn_logging(config.log_level)

    # Install the middleware.
    if config:
        app.add_middleware(
            XForwardedMiddleware,
            proxies=config.proxies,  # type: ignore[arg-type]
        )
        app.add_middleware(
            StateMiddleware,  # type: ignore[arg-type]
            cookie_name=COOKIE_NAME,
            state_class=State,
            parameters=config.cookie_parameters,
        )

    # Handle exceptions descended from ClientRequestError.
    app.exception_handler(ClientRequestError)(client_request_error_handler)

    return app


def create_openapi() -> str:
    """Generate the OpenAPI schema.

    Returns
    -------
    str
        OpenAPI schema as serialized JSON.
    """
    app = create_app(load_config=False)
    schema = get_openapi(
        title=app.title,
        description=app.description,
        version=app.version,
        routes=app.routes,
    )
    return json.dumps(schema)
