"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    providers: list[str]


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(request: Request) -> HealthResponse:
    """Report the registered providers.

    Providers are not contacted; health checks must not spend provider quota.
    """
    gateway = getattr(request.app.state, "gateway", None)
    providers = gateway.registry.names() if gateway is not None else []
    return HealthResponse(
        status="healthy" if providers else "degraded",
        timestamp=datetime.now(timezone.utc),
        providers=providers,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check() -> dict[str, str]:
    """Readiness check for container orchestration."""
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
