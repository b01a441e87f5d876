# =====================================================
# File: app/api/api_v1/auth/session.py
# Current caller identity
# =====================================================

from fastapi import APIRouter, Depends

from app.core.dependencies import get_current_user
from app.core.permissions import get_permissions_for_role
from app.models.user import User

router = APIRouter(prefix="/api/auth", tags=["authentication"])

# =====================================================
# CURRENT USER
# =====================================================

@router.get("/me")
async def read_current_user(current_user: User = Depends(get_current_user)):
    """The authenticated caller with the permissions their role grants"""
    result = current_user.to_dict()
    result["permissions"] = sorted(p.value for p in get_permissions_for_role(current_user.role))
    return result
