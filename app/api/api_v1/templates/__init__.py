"""
Templates API Package
"""
from fastapi import APIRouter

router = APIRouter(tags=["templates"])

from app.api.api_v1.templates.templates import router as templates_endpoints
router.include_router(templates_endpoints, prefix="/api/templates")

__all__ = ["router"]
