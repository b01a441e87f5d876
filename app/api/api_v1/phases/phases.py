# =====================================================
# FILE: app/api/api_v1/phases/phases.py
# Phase Management API - CRUD, gating and lifecycle actions
# =====================================================

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional
import logging

from app.core.database import get_db
from app.core.dependencies import get_current_user
from app.core.exceptions import DeliveryError, InvalidState, NotFound, PersistenceError, ValidationError
from app.core.permissions import Permission
from app.middleware.rbac_middleware import RBACDependency, can
from app.models.phase import Phase
from app.models.project import Project
from app.models.user import TeamMember, User
from app.services import phase_lifecycle as lifecycle
from app.services.approval_service import ApprovalService
from app.services.project_service import ProjectService
from app.api.api_v1.phases.schemas import PhaseCreate, PhaseTransition, PhaseUpdate

router = APIRouter()
logger = logging.getLogger(__name__)

# Actions that are decisions on the phase rather than work on it
DECISION_ACTIONS = (lifecycle.PhaseAction.APPROVE, lifecycle.PhaseAction.REQUEST_CHANGES)


def _get_phase(db: Session, phase_id: int, user: User) -> Phase:
    phase = db.query(Phase).filter(Phase.id == phase_id).first()
    if not phase or not ProjectService.can_access(phase.project, user):
        raise NotFound("Phase not found")
    return phase


def _phase_payload(db: Session, phase: Phase) -> dict:
    siblings = ProjectService.get_phases(db, phase.project_id)
    for item in ProjectService.serialize_phases(siblings):
        if item["id"] == phase.id:
            item["allowed_actions"] = lifecycle.allowed_actions(phase.status)
            return item
    raise NotFound("Phase not found")


def _resolve_member(db: Session, member_id: Optional[int]) -> Optional[TeamMember]:
    if member_id is None:
        return None
    member = db.query(TeamMember).filter(TeamMember.id == member_id).first()
    if not member:
        raise ValidationError(f"Team member {member_id} does not exist")
    return member


def _editable_project(db: Session, project_id: int, user: User) -> Project:
    project = ProjectService.get_project(db, project_id, user)
    if project.status == "archived":
        raise InvalidState(f"Project {project.project_code} is archived")
    return project


# =====================================================
# LIST PHASES
# =====================================================

@router.get("")
async def list_phases(
    project_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Phases ordered by project and ordinal, each with its is_accessible flag"""
    if project_id is not None:
        project = ProjectService.get_project(db, project_id, current_user)
        return ProjectService.serialize_phases(ProjectService.get_phases(db, project.id))

    query = db.query(Phase).join(Project, Phase.project_id == Project.id)
    if not can(current_user, Permission.PROJECT_VIEW_ALL):
        query = query.filter(Project.client_email == current_user.email)

    phases = query.order_by(Phase.project_id, Phase.order).all()
    return ProjectService.serialize_phases(phases)


# =====================================================
# CREATE PHASE
# =====================================================

@router.post("", status_code=201)
async def create_phase(
    payload: PhaseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.PHASE_MANAGE))
):
    try:
        project = _editable_project(db, payload.project_id, current_user)
        siblings = ProjectService.get_phases(db, project.id)

        order = payload.order or ProjectService.next_free_order(db, project.id)
        if any(p.order == order for p in siblings):
            raise ValidationError(f"Project {project.id} already has a phase with order {order}")

        member = _resolve_member(db, payload.assigned_to_id)
        phase = Phase(
            name=payload.name,
            order=order,
            description=payload.description,
            due_date=payload.due_date,
            assigned_to_id=payload.assigned_to_id,
            assigned_to_name=payload.assigned_to_name or (member.name if member else None),
            status=lifecycle.PhaseStatus.NOT_STARTED.value
        )
        project.phases.append(phase)

        ProjectService.refresh_progress(project, siblings + [phase])
        db.commit()
        db.refresh(phase)

        logger.info(f"Phase {phase.id} (order {order}) added to project {project.id} by {current_user.email}")
        return _phase_payload(db, phase)

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating phase: {str(e)}")
        raise PersistenceError() from e


# =====================================================
# GET PHASE
# =====================================================

@router.get("/{phase_id}")
async def get_phase(
    phase_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    phase = _get_phase(db, phase_id, current_user)
    return _phase_payload(db, phase)


# =====================================================
# UPDATE PHASE
# =====================================================

@router.put("/{phase_id}")
async def update_phase(
    phase_id: int,
    payload: PhaseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.PHASE_MANAGE))
):
    """Edit descriptive fields. Status changes go through POST /phases/{id}/transition"""
    try:
        updates = payload.model_dump(exclude_unset=True)
        if "status" in updates:
            raise ValidationError(
                "Phase status cannot be set directly; use POST /api/phases/{id}/transition"
            )

        phase = _get_phase(db, phase_id, current_user)
        _editable_project(db, phase.project_id, current_user)

        if updates.get("order") is not None and updates["order"] != phase.order:
            clash = db.query(Phase.id).filter(
                Phase.project_id == phase.project_id,
                Phase.order == updates["order"],
                Phase.id != phase.id
            ).first()
            if clash:
                raise ValidationError(f"Project {phase.project_id} already has a phase with order {updates['order']}")

        previous_member = phase.assigned_to_id
        if "assigned_to_id" in updates:
            member = _resolve_member(db, updates["assigned_to_id"])
            if "assigned_to_name" not in updates:
                updates["assigned_to_name"] = member.name if member else None

        for field, value in updates.items():
            if field in ("name", "order") and value is None:
                continue
            setattr(phase, field, value)

        db.flush()
        ProjectService.refresh_team_load(db, [previous_member, phase.assigned_to_id])
        db.commit()

        logger.info(f"Phase {phase.id} updated by {current_user.email}: {sorted(updates)}")
        return _phase_payload(db, phase)

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating phase {phase_id}: {str(e)}")
        raise PersistenceError() from e


# =====================================================
# DELETE PHASE
# =====================================================

@router.delete("/{phase_id}")
async def delete_phase(
    phase_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.PHASE_MANAGE))
):
    try:
        phase = _get_phase(db, phase_id, current_user)
        project = _editable_project(db, phase.project_id, current_user)
        member_id = phase.assigned_to_id

        db.delete(phase)
        db.flush()

        ProjectService.refresh_progress(project, ProjectService.get_phases(db, project.id))
        ProjectService.refresh_team_load(db, [member_id])
        db.commit()

        logger.info(f"Phase {phase_id} deleted from project {project.id} by {current_user.email}")
        return {"success": True, "id": phase_id}

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting phase {phase_id}: {str(e)}")
        raise PersistenceError() from e


# =====================================================
# PHASE LIFECYCLE ACTION
# =====================================================

@router.post("/{phase_id}/transition")
async def transition_phase(
    phase_id: int,
    payload: PhaseTransition,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Apply start, submit_for_approval, approve, request_changes or resume.

    approve and request_changes are client decisions; the other actions are
    delivery work and need phase management rights.
    """
    action = lifecycle.parse_action(payload.action)
    required = Permission.APPROVAL_RESPOND if action in DECISION_ACTIONS else Permission.PHASE_MANAGE
    if not can(current_user, required):
        logger.warning(f"User {current_user.id} ({current_user.role}) may not {action.value} phases")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Permission denied. Required: {[required.value]}"
        )

    # Visibility check before the locked transaction
    _get_phase(db, phase_id, current_user)

    phase = ApprovalService(db).transition_phase(phase_id, action, current_user, payload.feedback)
    result = _phase_payload(db, phase)
    result["project_progress"] = phase.project.progress_percentage
    result["project_status"] = phase.project.status
    return result
