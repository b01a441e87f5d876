# =====================================================
# FILE: app/services/project_service.py
# Project Service - codes, access, templates, derived fields
# =====================================================

from sqlalchemy.orm import Session
from typing import Any, Dict, Iterable, List, Optional
import logging
import secrets
import string

from app.core.config import settings
from app.core.exceptions import NotFound, ValidationError
from app.core.permissions import Permission, has_permission
from app.models.deliverable import Deliverable
from app.models.phase import Phase
from app.models.project import Project
from app.models.template import Template
from app.models.user import TeamMember, User
from app.services import phase_lifecycle as lifecycle

logger = logging.getLogger(__name__)

PROJECT_CODE_ALPHABET = string.ascii_uppercase + string.digits


class ProjectService:
    """Project business logic shared by the request handlers"""

    @staticmethod
    def generate_project_code(db: Session, length: Optional[int] = None) -> str:
        """Random upper-case alphanumeric code that is not yet in use"""
        length = length or settings.PROJECT_CODE_LENGTH
        while True:
            code = "".join(secrets.choice(PROJECT_CODE_ALPHABET) for _ in range(length))
            exists = db.query(Project.id).filter(Project.project_code == code).first()
            if not exists:
                return code

    @staticmethod
    def can_access(project: Project, user: User) -> bool:
        """Staff see every project; clients only the ones addressed to them."""
        if has_permission(user.role, Permission.PROJECT_VIEW_ALL):
            return True
        return bool(project.client_email) and project.client_email.lower() == user.email.lower()

    @staticmethod
    def get_project(db: Session, project_id: int, user: User) -> Project:
        """Fetch a project the caller may see. Foreign projects look absent."""
        project = db.query(Project).filter(Project.id == project_id).first()
        if not project or not ProjectService.can_access(project, user):
            raise NotFound("Project not found")
        return project

    @staticmethod
    def get_phases(db: Session, project_id: int) -> List[Phase]:
        return db.query(Phase).filter(
            Phase.project_id == project_id
        ).order_by(Phase.order).all()

    @staticmethod
    def serialize_phases(phases: Iterable[Phase]) -> List[Dict[str, Any]]:
        """Phase payloads with `is_accessible` computed per project."""
        by_project: Dict[int, List[Phase]] = {}
        for phase in phases:
            by_project.setdefault(phase.project_id, []).append(phase)

        payloads = []
        for project_phases in by_project.values():
            gates = lifecycle.accessibility_map(project_phases)
            for phase in sorted(project_phases, key=lambda p: p.order):
                item = phase.to_dict()
                item["is_accessible"] = gates[phase.order]
                payloads.append(item)
        return payloads

    @staticmethod
    def refresh_progress(project: Project, phases: Optional[Iterable[Phase]] = None) -> int:
        """
        Recompute progress_percentage (and the status it implies) from the
        project's phases.
        """
        phases = list(project.phases if phases is None else phases)
        progress = lifecycle.compute_progress(phases)
        project.progress_percentage = progress
        project.status = lifecycle.derive_project_status(project.status, progress)
        return progress

    @staticmethod
    def refresh_team_load(db: Session, member_ids: Iterable[Optional[int]]) -> None:
        """Recount active phases for each team member. Pending changes must be flushed."""
        active = [s.value for s in lifecycle.ACTIVE_STATUSES]
        for member_id in {m for m in member_ids if m}:
            member = db.query(TeamMember).filter(TeamMember.id == member_id).first()
            if not member:
                continue
            member.active_phases_count = db.query(Phase).filter(
                Phase.assigned_to_id == member_id,
                Phase.status.in_(active)
            ).count()

    @staticmethod
    def next_free_order(db: Session, project_id: int) -> int:
        orders = [p.order for p in ProjectService.get_phases(db, project_id)]
        return max(orders) + 1 if orders else 1

    @staticmethod
    def instantiate_template(db: Session, project: Project, template: Template) -> List[Phase]:
        """
        Create the template's phases and deliverables for a new project.

        The first phase starts immediately; the rest wait behind the approval gate.
        """
        phases = []
        for entry in sorted(template.phases or [], key=lambda p: p.get("order", 0)):
            phase = Phase(
                name=entry.get("name") or f"Phase {entry.get('order')}",
                order=lifecycle.validate_order(entry.get("order")),
                description=entry.get("description"),
                status=lifecycle.PhaseStatus.NOT_STARTED.value
            )
            project.phases.append(phase)
            phases.append(phase)

            for item in entry.get("deliverables") or []:
                phase.deliverables.append(Deliverable(
                    project=project,
                    name=item.get("name"),
                    description=item.get("description"),
                    link=item.get("link"),
                    link_type=item.get("link_type") or "other",
                    order=item.get("order") or 0,
                    status="draft"
                ))

        lifecycle.validate_sequence(phases)
        if phases and phases[0].order == 1:
            lifecycle.transition(phases[0], lifecycle.PhaseAction.START)

        logger.info(f"Instantiated template {template.id} with {len(phases)} phases")
        return phases

    @staticmethod
    def create_project(
        db: Session,
        data: Dict[str, Any],
        template: Optional[Template] = None
    ) -> Project:
        """Build and stage a new project. The caller commits."""
        if data.get("assigned_pm_id"):
            pm = db.query(TeamMember).filter(TeamMember.id == data["assigned_pm_id"]).first()
            if not pm:
                raise ValidationError(f"Team member {data['assigned_pm_id']} does not exist")

        code = data.get("project_code")
        if code:
            if db.query(Project.id).filter(Project.project_code == code).first():
                raise ValidationError(f"Project code {code} is already in use")
        else:
            code = ProjectService.generate_project_code(db)

        project = Project(
            name=data["name"],
            client_name=data.get("client_name"),
            client_email=data.get("client_email"),
            suite_type=data.get("suite_type") or (template.suite_type if template else None),
            status=data.get("status") or "active",
            progress_percentage=0,
            target_completion_date=data.get("target_completion_date"),
            internal_notes=data.get("internal_notes"),
            tags=data.get("tags") or [],
            project_code=code,
            assigned_pm_id=data.get("assigned_pm_id")
        )
        db.add(project)

        if template is not None:
            ProjectService.instantiate_template(db, project, template)

        ProjectService.refresh_progress(project)
        return project
