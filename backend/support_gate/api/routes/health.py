"""
Health check API routes.
"""
from fastapi import APIRouter, Depends
import logging

from ...config import settings
from ...limiter import RateGate
from ...models.schemas import HealthResponse
from ...store import SupportStore, utcnow
from ..dependencies import get_rate_gate, get_store

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        System health status
    """
    return HealthResponse(
        status="healthy",
        timestamp=utcnow(),
        version=settings.app_version,
        services={}
    )


@router.get("/ready", response_model=HealthResponse)
async def readiness_check(
    store: SupportStore = Depends(get_store),
    gate: RateGate = Depends(get_rate_gate)
):
    """
    Readiness check for all services.

    Returns:
        Detailed service health status
    """
    services = {}
    overall_status = "healthy"

    try:
        if await store.ping():
            services["store"] = "healthy"
        else:
            services["store"] = "unhealthy"
            overall_status = "degraded"
    except Exception as e:
        logger.error(f"Store health check failed: {e}")
        services["store"] = "unhealthy"
        overall_status = "degraded"

    services["rate_limiter"] = f"healthy ({len(gate)} keys)"

    return HealthResponse(
        status=overall_status,
        timestamp=utcnow(),
        version=settings.app_version,
        services=services
    )


@router.get("/live")
async def liveness_check():
    """
    Simple liveness check.

    Returns:
        Basic alive status
    """
    return {"status": "alive", "timestamp": utcnow().isoformat()}
