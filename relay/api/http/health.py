"""Health check endpoint for monitoring service status."""

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

from relay.constants import RelayMode
from relay.settings import app_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    default_mode: RelayMode
    connections: dict[str, int]


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check endpoint",
    tags=["health"],
)
async def health_check(request: Request) -> HealthResponse:
    """
    Report relay status and the number of registered clients per mode.

    Returns:
        HealthResponse: e.g.
            ``{"status": "healthy", "default_mode": "envelope",
            "connections": {"envelope": 2, "echo": 0}}``
    """
    registries = request.app.state.registries

    return HealthResponse(
        status="healthy",
        default_mode=app_settings.RELAY_MODE,
        connections={
            str(mode): registry.count() for mode, registry in registries.items()
        },
    )
