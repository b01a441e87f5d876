"""
Phases API Package
"""
from fastapi import APIRouter

router = APIRouter(tags=["phases"])

from app.api.api_v1.phases.phases import router as phases_endpoints
router.include_router(phases_endpoints, prefix="/api/phases")

__all__ = ["router"]
