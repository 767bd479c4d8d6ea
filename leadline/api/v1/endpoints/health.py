"""
Health Endpoints
Liveness and the full system health check
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from leadline.api.v1.dependencies import get_health_service
from leadline.domain.services.health_service import HealthService

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def liveness():
    return {"status": "healthy"}


@router.post("/check")
async def system_health_check(service: HealthService = Depends(get_health_service)):
    """
    Probe the database and Telnyx, record health_checks rows and return
    the overall status with recent error counts. 503 when any service is down.
    """
    report = await service.run_check()
    return JSONResponse(
        status_code=503 if report.status == "unhealthy" else 200,
        content=report.model_dump(mode="json"),
    )
