"""
Deliverables API Package
"""
from fastapi import APIRouter

router = APIRouter(tags=["deliverables"])

from app.api.api_v1.deliverables.deliverables import router as deliverables_endpoints
router.include_router(deliverables_endpoints, prefix="/api/deliverables")

__all__ = ["router"]
