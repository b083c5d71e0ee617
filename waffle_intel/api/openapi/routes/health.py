"""Health check endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from waffle_intel.api.dependencies import FactoryDep

router = APIRouter()


class LivenessResponse(BaseModel):
    """Liveness response."""

    status: str = Field(default="ok")
    timestamp: datetime = Field(description="Server time, ISO-8601")


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool = Field(description="Whether the service is ready to accept requests")
    checks: dict[str, bool] = Field(
        default_factory=dict,
        description="Individual readiness checks",
    )


@router.get(
    "/health",
    response_model=LivenessResponse,
    summary="Liveness probe",
    description="Reports that the process is up. Does not touch dependencies.",
)
async def health() -> LivenessResponse:
    return LivenessResponse(status="ok", timestamp=datetime.now(UTC))


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="Checks the database pool and object storage.",
    responses={503: {"model": ReadinessResponse}},
)
async def readiness(factory: FactoryDep) -> JSONResponse:
    """Check if service is ready to accept requests."""
    checks: dict[str, bool] = {}

    db_status = await factory.get_database().health_check()
    checks["database"] = db_status.healthy

    blob_status = await factory.get_blob_storage().health_check()
    checks["blob_storage"] = blob_status.healthy

    ready = all(checks.values())
    body = ReadinessResponse(ready=ready, checks=checks)
    return JSONResponse(status_code=200 if ready else 503, content=body.model_dump())
