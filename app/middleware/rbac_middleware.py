# =====================================================
# FILE: app/middleware/rbac_middleware.py
# Role-Based Access Control Dependency
# =====================================================

from fastapi import HTTPException, status, Depends
import logging

from app.core.permissions import Permission, has_permission
from app.core.dependencies import get_current_user
from app.models.user import User

logger = logging.getLogger(__name__)


class RBACDependency:
    """
    Dependency class for RBAC checks in FastAPI
    Usage: current_user: User = Depends(RBACDependency(Permission.PROJECT_CREATE))

    Passes when the caller's role grants any of the listed permissions and
    returns the caller.
    """
    def __init__(self, *permissions: Permission):
        self.permissions = permissions

    async def __call__(
        self,
        current_user: User = Depends(get_current_user)
    ) -> User:
        has_required = any(
            has_permission(current_user.role, perm)
            for perm in self.permissions
        )

        if not has_required:
            logger.warning(
                f"Access denied for user {current_user.id} ({current_user.role}). "
                f"Required: {[p.value for p in self.permissions]}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied. Required: {[p.value for p in self.permissions]}"
            )

        return current_user


def can(user: User, permission: Permission) -> bool:
    """Inline permission check for handlers that branch on role."""
    return has_permission(user.role, permission)
