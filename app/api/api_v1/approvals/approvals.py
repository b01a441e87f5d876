"""
Approvals API Router
File: app/api/api_v1/approvals/approvals.py

Approval requests are raised by the delivery team once a phase is awaiting
approval, and resolved by the client. Resolving an approval moves its phase
in the same transaction.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import desc
from typing import Optional
import logging

from app.core.database import get_db
from app.core.dependencies import get_current_user
from app.core.exceptions import DeliveryError, InvalidState, NotFound, PersistenceError, ValidationError
from app.core.permissions import Permission
from app.middleware.rbac_middleware import RBACDependency, can
from app.models.approval import Approval
from app.models.phase import Phase
from app.models.project import Project
from app.models.user import User
from app.services.approval_service import ApprovalService
from app.services.project_service import ProjectService
from app.api.api_v1.approvals.schemas import ApprovalCreate, ApprovalResolve

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/approvals", tags=["approvals"])


def _get_approval(db: Session, approval_id: int, user: User) -> Approval:
    approval = db.query(Approval).filter(Approval.id == approval_id).first()
    if not approval or not ProjectService.can_access(approval.project, user):
        raise NotFound("Approval not found")
    return approval


@router.get("")
async def list_approvals(
    project_id: Optional[int] = Query(None),
    phase_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Approvals visible to the caller, newest request first"""
    query = db.query(Approval).join(Project, Approval.project_id == Project.id)

    if not can(current_user, Permission.PROJECT_VIEW_ALL):
        query = query.filter(Project.client_email == current_user.email)
    if project_id is not None:
        query = query.filter(Approval.project_id == project_id)
    if phase_id is not None:
        query = query.filter(Approval.phase_id == phase_id)
    if status:
        query = query.filter(Approval.status == status)

    approvals = query.order_by(desc(Approval.requested_at), desc(Approval.id)).all()
    return [a.to_dict() for a in approvals]


@router.post("", status_code=201)
async def request_approval(
    payload: ApprovalCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.APPROVAL_REQUEST))
):
    phase = db.query(Phase).filter(Phase.id == payload.phase_id).first()
    if not phase or not ProjectService.can_access(phase.project, current_user):
        raise NotFound("Phase not found")
    if payload.project_id is not None and payload.project_id != phase.project_id:
        raise ValidationError(f"Phase {phase.id} does not belong to project {payload.project_id}")

    approval = ApprovalService(db).request_approval(phase.id, current_user)
    return approval.to_dict()


@router.get("/{approval_id}")
async def get_approval(
    approval_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _get_approval(db, approval_id, current_user).to_dict()


@router.put("/{approval_id}")
async def resolve_approval(
    approval_id: int,
    payload: ApprovalResolve,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.APPROVAL_RESPOND))
):
    """
    Approve or reject a pending approval.

    approved moves the phase to approved (and starts the next one); rejected
    moves it to changes_requested and posts the feedback to the project thread.
    """
    _get_approval(db, approval_id, current_user)

    approval = ApprovalService(db).resolve_approval(
        approval_id,
        payload.status,
        current_user,
        payload.feedback
    )
    result = approval.to_dict()
    result["phase_status"] = approval.phase.status
    result["project_progress"] = approval.project.progress_percentage
    return result


@router.delete("/{approval_id}")
async def delete_approval(
    approval_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.APPROVAL_DELETE))
):
    try:
        approval = _get_approval(db, approval_id, current_user)
        if approval.project.status == "archived":
            raise InvalidState(f"Project {approval.project.project_code} is archived")

        db.delete(approval)
        db.commit()

        logger.info(f"Approval {approval_id} deleted by {current_user.email}")
        return {"success": True, "id": approval_id}

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting approval {approval_id}: {str(e)}")
        raise PersistenceError() from e
