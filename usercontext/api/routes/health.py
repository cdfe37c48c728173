"""
Health Check Routes - System health and monitoring endpoints.

These endpoints are used for:
1. Load balancer health checks
2. Kubernetes liveness/readiness probes
3. Quick system status verification
"""
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from usercontext.core.logging_config import get_logger
from usercontext.memory import UserMemoryStore, get_memory_store
from usercontext.models.memory import HealthResponse

logger = get_logger(__name__)

router = APIRouter(
    prefix="/health",
    tags=["Health"],
)

APP_VERSION = "0.1.0"


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check endpoint",
    description="Returns 200 OK while the API process is responsive."
)
async def health_check() -> HealthResponse:
    """
    Perform a basic health check.

    Does not touch storage; see /health/ready for that.
    """
    logger.debug("Health check requested")

    return HealthResponse(
        status="healthy",
        version=APP_VERSION,
        timestamp=datetime.utcnow()
    )


@router.get(
    "/ready",
    response_model=HealthResponse,
    summary="Readiness check endpoint",
    description="Returns 200 when memory storage is reachable, 503 otherwise.",
    responses={503: {"model": HealthResponse, "description": "Storage unreachable"}}
)
def readiness_check(store: UserMemoryStore = Depends(get_memory_store)):
    """Verify that the memory backend answers."""
    logger.debug("Readiness check requested")

    ready = store.check()
    response = HealthResponse(
        status="ready" if ready else "unavailable",
        version=APP_VERSION,
        storage=store.backend.name,
        timestamp=datetime.utcnow()
    )
    if not ready:
        return JSONResponse(status_code=503, content=response.model_dump(mode="json"))
    return response
