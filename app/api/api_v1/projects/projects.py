# =====================================================
# FILE: app/api/api_v1/projects/projects.py
# Project Management API
# =====================================================

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import asc, desc
from typing import Optional
import logging

from app.core.database import get_db
from app.core.dependencies import get_current_user
from app.core.exceptions import DeliveryError, InvalidState, NotFound, PersistenceError, ValidationError
from app.core.permissions import Permission
from app.middleware.rbac_middleware import RBACDependency, can
from app.models.project import Project
from app.models.template import Template
from app.models.user import TeamMember, User
from app.services import phase_lifecycle as lifecycle
from app.services.project_service import ProjectService
from app.api.api_v1.projects.schemas import ProjectCreate, ProjectUpdate, SORTABLE_FIELDS

router = APIRouter()
logger = logging.getLogger(__name__)


# =====================================================
# LIST PROJECTS
# =====================================================

@router.get("")
async def list_projects(
    client_email: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    sort: Optional[str] = Query(None, description="Field name, prefix with - for descending"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List projects visible to the caller"""
    query = db.query(Project)

    if not can(current_user, Permission.PROJECT_VIEW_ALL):
        # Clients are pinned to their own projects whatever filter they send
        query = query.filter(Project.client_email == current_user.email)
    elif client_email:
        query = query.filter(Project.client_email == client_email.strip().lower())

    if status:
        query = query.filter(Project.status == status)

    if sort:
        field = sort.lstrip("-")
        if field not in SORTABLE_FIELDS:
            raise ValidationError(
                f"Cannot sort by {field!r}. Sortable fields: {', '.join(SORTABLE_FIELDS)}"
            )
        column = getattr(Project, SORTABLE_FIELDS[field])
        query = query.order_by(desc(column) if sort.startswith("-") else asc(column))
    else:
        query = query.order_by(desc(Project.created_at))

    return [project.to_dict() for project in query.all()]


# =====================================================
# CREATE PROJECT
# =====================================================

@router.post("", status_code=201)
async def create_project(
    payload: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.PROJECT_CREATE))
):
    """Create a project, optionally instantiating a template's phases"""
    try:
        template = None
        if payload.template_id is not None:
            template = db.query(Template).filter(Template.id == payload.template_id).first()
            if not template:
                raise NotFound(f"Template {payload.template_id} not found")

        data = payload.model_dump(exclude={"template_id"})
        project = ProjectService.create_project(db, data, template)
        db.commit()
        db.refresh(project)

        logger.info(f"Project {project.project_code} created by {current_user.email}")
        result = project.to_dict()
        result["phases"] = ProjectService.serialize_phases(project.phases)
        return result

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating project: {str(e)}")
        raise PersistenceError() from e


# =====================================================
# GET PROJECT
# =====================================================

@router.get("/{project_id}")
async def get_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = ProjectService.get_project(db, project_id, current_user)
    result = project.to_dict()
    result["phases"] = ProjectService.serialize_phases(project.phases)
    return result


# =====================================================
# PROJECT PROGRESS
# =====================================================

@router.get("/{project_id}/progress")
async def get_project_progress(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Progress recomputed from the current phase statuses"""
    project = ProjectService.get_project(db, project_id, current_user)
    phases = ProjectService.get_phases(db, project.id)
    gates = lifecycle.accessibility_map(phases)
    progress = lifecycle.compute_progress(phases)

    return {
        "project_id": project.id,
        "progress_percentage": progress,
        "status": lifecycle.derive_project_status(project.status, progress),
        "total_phases": len(phases),
        "approved_phases": sum(1 for p in phases if p.status == lifecycle.PhaseStatus.APPROVED),
        "phases": [
            {
                "id": p.id,
                "name": p.name,
                "order": p.order,
                "status": p.status,
                "is_accessible": gates[p.order],
            }
            for p in phases
        ]
    }


# =====================================================
# UPDATE PROJECT
# =====================================================

@router.put("/{project_id}")
async def update_project(
    project_id: int,
    payload: ProjectUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.PROJECT_EDIT))
):
    try:
        project = ProjectService.get_project(db, project_id, current_user)
        if project.status == "archived":
            raise InvalidState(f"Project {project.project_code} is archived")

        updates = payload.model_dump(exclude_unset=True)

        if updates.get("assigned_pm_id"):
            if not db.query(TeamMember).filter(TeamMember.id == updates["assigned_pm_id"]).first():
                raise ValidationError(f"Team member {updates['assigned_pm_id']} does not exist")

        code = updates.get("project_code")
        if code and code != project.project_code:
            taken = db.query(Project.id).filter(
                Project.project_code == code,
                Project.id != project.id
            ).first()
            if taken:
                raise ValidationError(f"Project code {code} is already in use")

        status = updates.get("status")
        if status in ("active", "completed"):
            implied = lifecycle.derive_project_status(status, project.progress_percentage)
            if implied != status:
                raise ValidationError(
                    f"Project {project.project_code} is {project.progress_percentage}% complete; "
                    f"its status follows progress and must be {implied}"
                )

        for field, value in updates.items():
            if field in ("name", "project_code", "status") and value is None:
                continue
            setattr(project, field, value)

        db.commit()
        db.refresh(project)
        logger.info(f"Project {project.id} updated by {current_user.email}: {sorted(updates)}")
        return project.to_dict()

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating project {project_id}: {str(e)}")
        raise PersistenceError() from e


# =====================================================
# DELETE PROJECT
# =====================================================

@router.delete("/{project_id}")
async def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.PROJECT_DELETE))
):
    """Delete a project with its phases, deliverables, approvals and messages"""
    try:
        project = ProjectService.get_project(db, project_id, current_user)
        member_ids = [p.assigned_to_id for p in project.phases]

        db.delete(project)
        db.flush()
        ProjectService.refresh_team_load(db, member_ids)
        db.commit()

        logger.info(f"Project {project_id} deleted by {current_user.email}")
        return {"success": True, "id": project_id}

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting project {project_id}: {str(e)}")
        raise PersistenceError() from e
