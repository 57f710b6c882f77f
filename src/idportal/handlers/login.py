"""Handlers for logging in and out."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status
from safir.datetime import current_datetime
from safir.models import ErrorModel

from ..dependencies.auth import AuthenticateRead
from ..dependencies.context import RequestContext, context_dependency
from ..exceptions import AuthError
from ..models.session import LoginRequest, SessionInfo
from ..models.state import SessionIdentity, State
from ..util import random_128_bits, session_info
from .util import auth_error_to_client

router = APIRouter()
authenticate_read = AuthenticateRead()

__all__ = ["router"]


@router.post(
    "/login",
    description=(
        "Verify a username and password against the directory and start a"
        " session. The session is stored in an encrypted cookie, and the"
        " response includes the CSRF token required by state-changing"
        " routes."
    ),
    response_model=SessionInfo,
    responses={
        401: {"description": "Invalid credentials", "model": ErrorModel},
        403: {"description": "Account disabled", "model": ErrorModel},
        503: {"description": "Directory unavailable", "model": ErrorModel},
    },
    summary="Log in",
    tags=["browser"],
)
async def post_login(
    login: LoginRequest,
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> SessionInfo:
    context.rebind_logger(user=login.username)
    verifier = context.factory.create_credential_verifier()
    try:
        identity = await verifier.verify(login.username, login.password)
    except AuthError as e:
        context.logger.info(
            "Authentication failed", reason=e.reason.value, error=str(e)
        )
        raise auth_error_to_client(e) from e

    context.rebind_logger(user=identity.username)
    profile_service = context.factory.create_profile_service()
    async with context.session.begin():
        profile = await profile_service.record_login(identity)

    state = State(
        csrf=random_128_bits(),
        identity=SessionIdentity(
            id=profile.id,
            username=profile.username,
            name=profile.name,
            dn=profile.dn,
            email=profile.email,
            groups=profile.groups,
            onboarding_complete=profile.onboarding_complete,
        ),
        login_time=current_datetime(),
    )
    context.state = state
    context.logger.info("Successfully authenticated user")
    return session_info(context.config, state)


@router.post(
    "/logout",
    description="End the current session and clear the session cookie",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Log out",
    tags=["browser"],
)
async def post_logout(
    identity: Annotated[SessionIdentity, Depends(authenticate_read)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> None:
    context.state = State()
    context.logger.info("Successful logout")
