# =====================================================
# FILE: app/core/permissions.py
# Role-Based Access Control Permission Definitions
# =====================================================

from enum import Enum
from typing import Dict, Set


class Permission(str, Enum):
    # Project Permissions
    PROJECT_VIEW = "project.view"
    PROJECT_CREATE = "project.create"
    PROJECT_EDIT = "project.edit"
    PROJECT_DELETE = "project.delete"
    PROJECT_VIEW_ALL = "project.view_all"

    # Phase Permissions
    PHASE_MANAGE = "phase.manage"

    # Deliverables
    DELIVERABLE_MANAGE = "deliverable.manage"

    # Approvals
    APPROVAL_REQUEST = "approval.request"
    APPROVAL_RESPOND = "approval.respond"
    APPROVAL_DELETE = "approval.delete"

    # Messages
    MESSAGE_POST = "message.post"
    MESSAGE_MODERATE = "message.moderate"

    # Catalog
    TEMPLATE_MANAGE = "template.manage"
    TEAM_MANAGE = "team.manage"


# Role to Permissions Mapping
ROLE_PERMISSIONS: Dict[str, Set[Permission]] = {
    "admin": {p for p in Permission},  # All permissions

    "pm": {
        Permission.PROJECT_VIEW, Permission.PROJECT_CREATE,
        Permission.PROJECT_EDIT, Permission.PROJECT_DELETE,
        Permission.PROJECT_VIEW_ALL,
        Permission.PHASE_MANAGE,
        Permission.DELIVERABLE_MANAGE,
        Permission.APPROVAL_REQUEST,
        Permission.MESSAGE_POST, Permission.MESSAGE_MODERATE,
        Permission.TEMPLATE_MANAGE, Permission.TEAM_MANAGE,
    },

    "client": {
        Permission.PROJECT_VIEW,
        Permission.APPROVAL_RESPOND,
        Permission.MESSAGE_POST,
    },
}


def get_permissions_for_role(role_name: str) -> Set[Permission]:
    """Get all permissions for a role"""
    return ROLE_PERMISSIONS.get(role_name, set())


def has_permission(role_name: str, permission: Permission) -> bool:
    """Check if a role grants a specific permission"""
    return permission in get_permissions_for_role(role_name)
