# gridsync/routers/health.py
# Health check endpoints for monitoring and load balancers
# Provides liveness and readiness probes

import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from gridsync.dependencies import get_context
from gridsync.state.context import SyncContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


class HealthStatus(BaseModel):
    """Health check response model."""
    status: str  # "healthy", "degraded", "unhealthy"
    timestamp: float
    version: str = "1.0.0"
    checks: Dict[str, Dict[str, Any]] = {}


class ComponentHealth(BaseModel):
    """Individual component health."""
    status: str
    latency_ms: float = 0.0
    message: str = ""


def check_sync_state(context: SyncContext) -> ComponentHealth:
    """Make sure the shared state lock can be taken and the log is readable."""
    start = time.time()
    try:
        stats = context.stats()
        return ComponentHealth(
            status="healthy",
            latency_ms=(time.time() - start) * 1000,
            message=(
                f"latest update {stats['latest_id']}, {stats['retained']} retained, "
                f"{stats['live_clients']} live clients"
            )
        )
    except Exception as e:
        logger.error(f"Sync state health check failed: {e}")
        return ComponentHealth(
            status="unhealthy",
            latency_ms=(time.time() - start) * 1000,
            message=f"Sync state error: {type(e).__name__}"
        )


@router.get("/health", response_model=HealthStatus)
async def health_check(response: Response, context: SyncContext = Depends(get_context)):
    """
    Full health check endpoint.
    Returns status of all components.
    """
    sync_health = check_sync_state(context)
    checks = {
        "sync_state": {
            "status": sync_health.status,
            "latency_ms": round(sync_health.latency_ms, 2),
            "message": sync_health.message
        }
    }

    if sync_health.status == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        response.status_code = status.HTTP_200_OK

    return HealthStatus(
        status=sync_health.status,
        timestamp=time.time(),
        checks=checks
    )


@router.get("/health/live")
async def liveness_probe():
    """
    Liveness probe.
    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_probe(response: Response, context: SyncContext = Depends(get_context)):
    """
    Readiness probe.
    Returns 200 only if the shared state answers.
    """
    sync_health = check_sync_state(context)

    if sync_health.status == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {
            "status": "not_ready",
            "reason": sync_health.message
        }

    return {"status": "ready"}
