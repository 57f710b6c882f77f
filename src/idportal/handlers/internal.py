"""Handlers for internal routes not exposed outside the cluster."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from safir.metadata import Metadata, get_metadata

from ..dependencies.context import RequestContext, context_dependency
from ..models.health import HealthCheck, HealthStatus

router = APIRouter()

__all__ = ["router"]


@router.get(
    "/",
    description=(
        "Return metadata about the running application. This route is not"
        " exposed outside the cluster and therefore cannot be used by"
        " external clients."
    ),
    response_model=Metadata,
    response_model_exclude_none=True,
    summary="Application metadata",
    tags=["internal"],
)
async def get_index() -> Metadata:
    return get_metadata(package_name="idportal", application_name="idportal")


@router.get(
    "/health",
    description=(
        "Perform an internal health check of the database and, if a service"
        " account is configured, the directory"
    ),
    response_model=HealthCheck,
    summary="Health check",
    tags=["internal"],
)
async def get_health(
    *,
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> HealthCheck:
    health_check_service = context.factory.create_health_check_service()
    async with context.session.begin():
        directory = await health_check_service.check()
    return HealthCheck(status=HealthStatus.HEALTHY, directory=directory)
