"""Health check endpoints."""

from datetime import datetime
from typing import Dict

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel


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
    session = request.app.state.session
    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow().isoformat(),
        version="1.0.0",
        services={
            "api": "up",
            "store": type(request.app.state.store).__name__,
            "drive": "connected" if session is not None and await session.is_connected() else "disconnected",
        }
    )


@router.get("/ready")
async def readiness_check() -> Dict[str, str]:
    """Kubernetes readiness check."""
    return {"status": "ready"}


@router.get("/live")
async def liveness_check(response: Response) -> Dict[str, str]:
    """Kubernetes liveness check."""
    return {"status": "alive"}
