"""Route handlers for the ``/api/v1`` API.

All the route handlers are intentionally defined in a single file to encourage
the implementation to be very short. All the business logic should be defined
in service objects and the output formatting should be handled by response
models.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile, status
from safir.models import ErrorModel

from ..dependencies.auth import AuthenticateRead, AuthenticateWrite
from ..dependencies.context import RequestContext, context_dependency
from ..exceptions import (
    CheckError,
    DirectoryUnavailableError,
    InvalidPhotoError,
    PasswordRejectedError,
    WriteError,
)
from ..models.identity import VerifiedCaller
from ..models.profile import (
    OnboardingRequest,
    ProfileRecord,
    RecoveryEmailRequest,
)
from ..models.session import (
    PasswordChangeRequest,
    PhotoResponse,
    SessionInfo,
    UserCheckRequest,
    UserCheckResponse,
)
from ..models.state import SessionIdentity
from ..util import session_info
from .util import write_error_to_client

router = APIRouter(prefix="/api/v1")
authenticate_read = AuthenticateRead()
authenticate_write = AuthenticateWrite()

__all__ = ["router"]


def _caller(identity: SessionIdentity) -> VerifiedCaller:
    return VerifiedCaller(username=identity.username, dn=identity.dn)


@router.get(
    "/session",
    response_model=SessionInfo,
    summary="Current session",
    tags=["user"],
)
async def get_session(
    identity: Annotated[SessionIdentity, Depends(authenticate_read)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> SessionInfo:
    return session_info(context.config, context.state)


@router.get(
    "/profile",
    response_model=ProfileRecord,
    responses={404: {"description": "No profile", "model": ErrorModel}},
    summary="Profile of the current user",
    tags=["user"],
)
async def get_profile(
    identity: Annotated[SessionIdentity, Depends(authenticate_read)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> ProfileRecord:
    profile_service = context.factory.create_profile_service()
    async with context.session.begin():
        return await profile_service.get_profile(identity.username)


@router.post(
    "/onboarding",
    description=(
        "Set the recovery email address of the current user and mark"
        " onboarding as complete. The recovery email must differ from the"
        " primary email address."
    ),
    response_model=ProfileRecord,
    responses={422: {"description": "Invalid email", "model": ErrorModel}},
    summary="Complete onboarding",
    tags=["user"],
)
async def post_onboarding(
    request: OnboardingRequest,
    identity: Annotated[SessionIdentity, Depends(authenticate_write)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> ProfileRecord:
    profile_service = context.factory.create_profile_service()
    async with context.session.begin():
        profile = await profile_service.complete_onboarding(
            identity.username, request.recovery_email, identity.email
        )
    state = context.state
    context.state = replace(
        state, identity=replace(identity, onboarding_complete=True)
    )
    return profile


@router.put(
    "/recovery-email",
    response_model=ProfileRecord,
    responses={422: {"description": "Invalid email", "model": ErrorModel}},
    summary="Change recovery email",
    tags=["user"],
)
async def put_recovery_email(
    request: RecoveryEmailRequest,
    identity: Annotated[SessionIdentity, Depends(authenticate_write)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> ProfileRecord:
    profile_service = context.factory.create_profile_service()
    async with context.session.begin():
        return await profile_service.update_recovery_email(
            identity.username, request.recovery_email
        )


@router.post(
    "/password",
    description=(
        "Change the directory password of the current user. The current"
        " password is verified by the directory before the change."
    ),
    responses={
        422: {"description": "Password rejected", "model": ErrorModel},
        503: {"description": "Directory unavailable", "model": ErrorModel},
    },
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Change password",
    tags=["user"],
)
async def post_password(
    request: PasswordChangeRequest,
    identity: Annotated[SessionIdentity, Depends(authenticate_write)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> None:
    password_service = context.factory.create_password_service()
    try:
        async with context.session.begin():
            await password_service.change_password(
                _caller(identity),
                request.old_password,
                request.new_password,
                request.confirm_password,
            )
    except WriteError as e:
        context.logger.warning(
            "Password change failed", reason=e.reason.value, error=str(e)
        )
        raise write_error_to_client(e, PasswordRejectedError()) from e


@router.post(
    "/photo",
    description=(
        "Replace the profile photo of the current user. JPEG and PNG images"
        " are accepted and converted to a small JPEG thumbnail."
    ),
    response_model=PhotoResponse,
    responses={
        422: {"description": "Invalid image", "model": ErrorModel},
        503: {"description": "Directory unavailable", "model": ErrorModel},
    },
    summary="Change profile photo",
    tags=["user"],
)
async def post_photo(
    image: Annotated[UploadFile, File(description="New profile photo")],
    identity: Annotated[SessionIdentity, Depends(authenticate_write)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> PhotoResponse:
    limit = context.config.photo.max_upload_size
    data = await image.read(limit + 1)
    photo_service = context.factory.create_photo_service()
    try:
        async with context.session.begin():
            thumbnail = await photo_service.update_photo(
                _caller(identity), data, image.content_type
            )
    except WriteError as e:
        context.logger.warning(
            "Photo update failed", reason=e.reason.value, error=str(e)
        )
        rejected = InvalidPhotoError("Photo rejected by the directory")
        raise write_error_to_client(e, rejected) from e
    return PhotoResponse(thumbnail=thumbnail)


@router.post(
    "/users/check",
    response_model=UserCheckResponse,
    responses={
        503: {"description": "Directory unavailable", "model": ErrorModel}
    },
    summary="Check whether a user exists",
    tags=["user"],
)
async def post_user_check(
    request: UserCheckRequest,
    identity: Annotated[SessionIdentity, Depends(authenticate_read)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> UserCheckResponse:
    checker = context.factory.create_existence_checker()
    try:
        exists = await checker.exists(request.username)
    except CheckError as e:
        raise DirectoryUnavailableError() from e
    return UserCheckResponse(username=request.username, exists=exists)
