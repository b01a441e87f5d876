"""
Messages API Package
"""
from fastapi import APIRouter

router = APIRouter(tags=["messages"])

from app.api.api_v1.messages.messages import router as messages_endpoints
router.include_router(messages_endpoints, prefix="/api/messages")

__all__ = ["router"]
