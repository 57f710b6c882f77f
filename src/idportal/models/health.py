"""Models for health checks."""

from __future__ import annotations

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field

__all__ = [
    "HealthCheck",
    "HealthStatus",
]


class HealthStatus(str, Enum):
    """Status of health check.

    Failures are reported as HTTP errors, so a response body always carries
    the healthy status.
    """

    HEALTHY = "healthy"


class HealthCheck(BaseModel):
    """Results of an internal health check."""

    status: Annotated[HealthStatus, Field(title="Health status")]

    directory: Annotated[
        bool,
        Field(
            title="Directory checked",
            description=(
                "Whether the service account bind was tested. This is false"
                " if no service account is configured."
            ),
        ),
    ]
