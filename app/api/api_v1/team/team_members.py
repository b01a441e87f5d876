"""
Team Members API Router
File: app/api/api_v1/team/team_members.py
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional
import logging

from app.core.database import get_db
from app.core.dependencies import get_current_user
from app.core.exceptions import DeliveryError, NotFound, PersistenceError, ValidationError
from app.core.permissions import Permission
from app.middleware.rbac_middleware import RBACDependency
from app.models.phase import Phase
from app.models.user import TeamMember, User

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/team-members", tags=["team-members"])

# =====================================================
# Pydantic Schemas
# =====================================================

class TeamMemberCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    role: Optional[str] = Field(None, max_length=100)
    avatar_url: Optional[str] = None

    @validator('email')
    def normalize_email(cls, v):
        return v.lower()

class TeamMemberUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[str] = Field(None, max_length=100)
    avatar_url: Optional[str] = None

    @validator('email')
    def normalize_email(cls, v):
        return v.lower() if v else v

# =====================================================
# Helpers
# =====================================================

def _get_member(db: Session, member_id: int) -> TeamMember:
    member = db.query(TeamMember).filter(TeamMember.id == member_id).first()
    if not member:
        raise NotFound("Team member not found")
    return member

def _ensure_email_free(db: Session, email: str, member_id: Optional[int] = None) -> None:
    query = db.query(TeamMember.id).filter(TeamMember.email == email)
    if member_id is not None:
        query = query.filter(TeamMember.id != member_id)
    if query.first():
        raise ValidationError(f"A team member with email {email} already exists")

# =====================================================
# Endpoints
# =====================================================

@router.get("")
async def list_team_members(
    role: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Team roster with each member's current active phase load"""
    query = db.query(TeamMember)
    if role:
        query = query.filter(TeamMember.role == role)
    return [m.to_dict() for m in query.order_by(TeamMember.name).all()]


@router.post("", status_code=201)
async def create_team_member(
    payload: TeamMemberCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.TEAM_MANAGE))
):
    try:
        _ensure_email_free(db, payload.email)

        member = TeamMember(**payload.model_dump(), active_phases_count=0)
        db.add(member)
        db.commit()
        db.refresh(member)

        logger.info(f"Team member {member.email} added by {current_user.email}")
        return member.to_dict()

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating team member: {str(e)}")
        raise PersistenceError() from e


@router.get("/{member_id}")
async def get_team_member(
    member_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _get_member(db, member_id).to_dict()


@router.put("/{member_id}")
async def update_team_member(
    member_id: int,
    payload: TeamMemberUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.TEAM_MANAGE))
):
    """active_phases_count is derived from phase assignments and cannot be set"""
    try:
        member = _get_member(db, member_id)
        updates = payload.model_dump(exclude_unset=True)

        if updates.get("email"):
            _ensure_email_free(db, updates["email"], member.id)

        for field, value in updates.items():
            if value is None and field in ("email", "name"):
                continue
            setattr(member, field, value)

        db.commit()
        db.refresh(member)
        return member.to_dict()

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating team member {member_id}: {str(e)}")
        raise PersistenceError() from e


@router.delete("/{member_id}")
async def delete_team_member(
    member_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.TEAM_MANAGE))
):
    """Phases and projects assigned to the member are left unassigned"""
    try:
        member = _get_member(db, member_id)
        db.query(Phase).filter(Phase.assigned_to_id == member.id).update(
            {Phase.assigned_to_name: None}, synchronize_session=False
        )
        db.delete(member)
        db.commit()

        logger.info(f"Team member {member_id} removed by {current_user.email}")
        return {"success": True, "id": member_id}

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting team member {member_id}: {str(e)}")
        raise PersistenceError() from e
