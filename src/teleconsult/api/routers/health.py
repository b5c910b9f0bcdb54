"""
Health check endpoints.
"""

from datetime import datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

from teleconsult.adapters.db.mongo.database import ping

from ..schemas.common import ApiResponse
from ..utils.responses import ok

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    timestamp: datetime
    version: str
    service: str


@router.get("", response_model=ApiResponse[HealthResponse])
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns the current status of the service.
    """
    settings = request.app.state.settings
    return ok(request, data=HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow(),
        version=settings.app_version,
        service=settings.app_name,
    ), message="OK")


@router.get("/ready", response_model=ApiResponse[dict])
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Returns whether the service is ready to handle requests: the service
    container is wired and, for the mongo backend, the database answers a ping.
    """
    checks = {}
    all_ok = True

    container = getattr(request.app.state, "container", None)
    if container is None:
        checks["services"] = "not_initialised"
        all_ok = False
    else:
        checks["services"] = "ok"
        backend = container.settings.database.backend
        client = container.resources.get("mongo_client")
        if backend == "mongo":
            try:
                await ping(client)
                checks["database"] = "ok"
            except Exception as e:
                checks["database"] = f"error: {str(e)[:50]}"
                all_ok = False
        else:
            checks["database"] = backend
        checks["notifications"] = container.settings.notifications.backend

    return ok(request, data={
        "status": "ready" if all_ok else "degraded",
        "timestamp": datetime.utcnow(),
        "checks": checks,
    }, message="OK" if all_ok else "Some services unavailable")


@router.get("/live", response_model=ApiResponse[dict])
async def liveness_check(request: Request):
    """
    Liveness check endpoint.

    Returns whether the service is alive.
    """
    return ok(request, data={"status": "alive", "timestamp": datetime.utcnow()}, message="OK")
