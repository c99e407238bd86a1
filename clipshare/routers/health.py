# clipshare/routers/health.py
# Health check endpoints for the UI shell, monitoring and load balancers

import logging
from fastapi import APIRouter, Depends, Response, status

from clipshare.dependencies import get_service
from clipshare.schemas.clipboard import HealthResponse
from clipshare.services.clipboard_service import ClipboardService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    response: Response,
    service: ClipboardService = Depends(get_service),
) -> HealthResponse:
    """
    Store connectivity check.
    The UI shell uses storeConnected to decide whether the app is usable.
    """
    result = await service.health()
    if not result["storeConnected"]:
        logger.warning("Health check: store not connected")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return HealthResponse(**result)


@router.get("/health/live")
async def liveness_probe():
    """
    Liveness probe.
    Returns 200 if the process is serving requests.
    Does NOT check external dependencies.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_probe(
    response: Response,
    service: ClipboardService = Depends(get_service),
):
    """
    Readiness probe.
    Returns 200 only if the store answers a ping.
    """
    result = await service.health()
    if not result["storeConnected"]:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready", "reason": "store not connected"}
    return {"status": "ready"}
