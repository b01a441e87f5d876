# =====================================================
# FILE: app/models/__init__.py
# =====================================================

from app.core.database import Base

# Identity and team
from app.models.user import User, TeamMember

# Delivery entities
from app.models.project import Project
from app.models.phase import Phase
from app.models.deliverable import Deliverable
from app.models.approval import Approval
from app.models.message import Message
from app.models.template import Template

# Export all models
__all__ = [
    # Core
    "Base",

    # Identity & team
    "User",
    "TeamMember",

    # Delivery
    "Project",
    "Phase",
    "Deliverable",
    "Approval",
    "Message",
    "Template",
]
