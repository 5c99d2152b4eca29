"""Response schemas for the operational endpoints served by main.py."""

from typing import Dict

from pydantic import Field

from ._strict_base import StrictModel


class HealthResponse(StrictModel):
    """Response for health check endpoint."""

    status: str = Field(description="Health status")
    service: str = Field(description="Service name")
    version: str = Field(description="API version")
    environment: str = Field(description="Environment name")
    timestamp: str = Field(description="UTC ISO8601Z timestamp of the health response")
    database_pool: Dict[str, int] = Field(description="Connection pool statistics")


class HealthLiteResponse(StrictModel):
    """Response for lightweight health check endpoint."""

    status: str = Field(description="Health status (ok/error)")
