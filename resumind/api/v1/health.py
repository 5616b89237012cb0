from fastapi import APIRouter, Depends

from resumind.api.deps import get_platform
from resumind.core.platform import Platform

router = APIRouter()


@router.get("/health", summary="Health Check", description="Check the health status of the application.")
async def health_check(platform: Platform = Depends(get_platform)):
    return {"status": "healthy", "ready": platform.readiness.is_ready()}
