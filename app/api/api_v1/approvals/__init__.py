"""
Approvals Module Init
File: app/api/api_v1/approvals/__init__.py
"""

from fastapi import APIRouter
from . import approvals

router = APIRouter()

# Include approval request/response router
router.include_router(approvals.router)
