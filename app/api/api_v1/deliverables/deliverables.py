# =====================================================
# FILE: app/api/api_v1/deliverables/deliverables.py
# Deliverable Management API
# =====================================================

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional
import logging

from app.core.database import get_db
from app.core.dependencies import get_current_user
from app.core.exceptions import DeliveryError, InvalidState, NotFound, PersistenceError, ValidationError
from app.core.permissions import Permission
from app.middleware.rbac_middleware import RBACDependency, can
from app.models.deliverable import Deliverable
from app.models.phase import Phase
from app.models.project import Project
from app.models.user import User
from app.services.project_service import ProjectService
from app.api.api_v1.deliverables.schemas import DeliverableCreate, DeliverableUpdate

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_deliverable(db: Session, deliverable_id: int, user: User) -> Deliverable:
    deliverable = db.query(Deliverable).filter(Deliverable.id == deliverable_id).first()
    if not deliverable or not ProjectService.can_access(deliverable.project, user):
        raise NotFound("Deliverable not found")
    return deliverable


@router.get("")
async def list_deliverables(
    project_id: Optional[int] = Query(None),
    phase_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(Deliverable).join(Project, Deliverable.project_id == Project.id)

    if not can(current_user, Permission.PROJECT_VIEW_ALL):
        query = query.filter(Project.client_email == current_user.email)
    if project_id is not None:
        query = query.filter(Deliverable.project_id == project_id)
    if phase_id is not None:
        query = query.filter(Deliverable.phase_id == phase_id)

    deliverables = query.order_by(Deliverable.phase_id, Deliverable.order, Deliverable.id).all()
    return [d.to_dict() for d in deliverables]


@router.post("", status_code=201)
async def create_deliverable(
    payload: DeliverableCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.DELIVERABLE_MANAGE))
):
    try:
        project = ProjectService.get_project(db, payload.project_id, current_user)
        if project.status == "archived":
            raise InvalidState(f"Project {project.project_code} is archived")

        phase = db.query(Phase).filter(Phase.id == payload.phase_id).first()
        if not phase:
            raise NotFound("Phase not found")
        if phase.project_id != project.id:
            raise ValidationError(f"Phase {phase.id} does not belong to project {project.id}")

        deliverable = Deliverable(**payload.model_dump())
        db.add(deliverable)
        db.commit()
        db.refresh(deliverable)

        logger.info(f"Deliverable {deliverable.id} added to phase {phase.id} by {current_user.email}")
        return deliverable.to_dict()

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating deliverable: {str(e)}")
        raise PersistenceError() from e


@router.get("/{deliverable_id}")
async def get_deliverable(
    deliverable_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _get_deliverable(db, deliverable_id, current_user).to_dict()


@router.put("/{deliverable_id}")
async def update_deliverable(
    deliverable_id: int,
    payload: DeliverableUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.DELIVERABLE_MANAGE))
):
    try:
        deliverable = _get_deliverable(db, deliverable_id, current_user)
        if deliverable.project.status == "archived":
            raise InvalidState(f"Project {deliverable.project.project_code} is archived")

        for field, value in payload.model_dump(exclude_unset=True).items():
            if value is None and field in ("name", "status", "order"):
                continue
            setattr(deliverable, field, value)

        db.commit()
        db.refresh(deliverable)
        return deliverable.to_dict()

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating deliverable {deliverable_id}: {str(e)}")
        raise PersistenceError() from e


@router.delete("/{deliverable_id}")
async def delete_deliverable(
    deliverable_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.DELIVERABLE_MANAGE))
):
    try:
        deliverable = _get_deliverable(db, deliverable_id, current_user)
        if deliverable.project.status == "archived":
            raise InvalidState(f"Project {deliverable.project.project_code} is archived")

        db.delete(deliverable)
        db.commit()

        logger.info(f"Deliverable {deliverable_id} deleted by {current_user.email}")
        return {"success": True, "id": deliverable_id}

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting deliverable {deliverable_id}: {str(e)}")
        raise PersistenceError() from e
