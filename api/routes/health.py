"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from connectors.erp_base import list_available_gateways


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint."""
    settings = request.app.state.settings
    services = request.app.state.services
    return HealthResponse(
        status="healthy" if services is not None else "starting",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version="1.0.0",
        services={
            "api": "up",
            "erp": "configured" if not settings.validate() else "unconfigured",
            "gateways": ",".join(list_available_gateways()),
            "notifications": settings.notify_backend,
        }
    )


@router.get("/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """Readiness probe for Kubernetes."""
    if request.app.state.services is None:
        response.status_code = 503
        return {"status": "starting"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check(response: Response) -> Dict[str, str]:
    """Liveness probe for Kubernetes."""
    return {"status": "alive"}
