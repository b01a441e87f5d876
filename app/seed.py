"""
Demo data loader
File: app/seed.py

Run with:  python -m app.seed

Idempotent: existing users, team members, the template and the DEMO01
project are left untouched.
"""

from datetime import date, timedelta
import logging

from app.core.database import get_db_session, init_db
from app.models.message import Message
from app.models.project import Project
from app.models.template import Template
from app.models.user import TeamMember, User
from app.services.approval_service import ApprovalService
from app.services.phase_lifecycle import PhaseAction
from app.services.project_service import ProjectService

logger = logging.getLogger(__name__)

DEMO_PROJECT_CODE = "DEMO01"

TEAM = [
    {"email": "pm@deliverystudio.io", "name": "Project Manager", "role": "pm"},
    {"email": "designer@deliverystudio.io", "name": "Designer", "role": "designer"},
]

USERS = [
    {"email": "admin@deliverystudio.io", "full_name": "Studio Admin", "role": "admin"},
    {"email": "pm@deliverystudio.io", "full_name": "Project Manager", "role": "pm"},
    {"email": "client@northwind.io", "full_name": "Demo Client", "role": "client"},
]

LAUNCH_TEMPLATE = {
    "name": "Launch Suite Template",
    "suite_type": "launch",
    "description": "Standard 7-21 day Launch Suite delivery template",
    "phases": [
        {
            "name": "Discovery & Kickoff",
            "order": 1,
            "description": "Gather requirements and confirm scope.",
            "deliverables": [
                {"name": "Kickoff notes", "order": 1},
                {"name": "Requirements summary", "order": 2},
            ],
        },
        {
            "name": "Branding",
            "order": 2,
            "description": "Logo + brand direction.",
            "deliverables": [
                {"name": "Logo concepts", "order": 1},
                {"name": "Brand guide", "order": 2},
            ],
        },
        {
            "name": "Website",
            "order": 3,
            "description": "Landing page and core pages.",
            "deliverables": [
                {"name": "Figma design", "order": 1, "link_type": "figma"},
                {"name": "Staging link", "order": 2, "link_type": "web"},
            ],
        },
    ],
}


def _upsert(db, model, key: str, values: dict):
    instance = db.query(model).filter(getattr(model, key) == values[key]).first()
    if instance is None:
        instance = model(**values)
        db.add(instance)
        db.flush()
        logger.info(f"Created {model.__name__} {values[key]}")
    return instance


def seed(db) -> None:
    team = {m["role"]: _upsert(db, TeamMember, "email", m) for m in TEAM}
    users = {u["role"]: _upsert(db, User, "email", u) for u in USERS}
    template = _upsert(db, Template, "name", LAUNCH_TEMPLATE)
    db.commit()

    if db.query(Project.id).filter(Project.project_code == DEMO_PROJECT_CODE).first():
        logger.info("Sample project already exists, skipping...")
        return

    project = ProjectService.create_project(db, {
        "name": "Launch Suite MVP",
        "client_name": "Northwind Traders",
        "client_email": users["client"].email,
        "suite_type": "launch",
        "assigned_pm_id": team["pm"].id,
        "target_completion_date": date.today() + timedelta(days=14),
        "project_code": DEMO_PROJECT_CODE,
    }, template)

    for phase in project.phases:
        phase.due_date = date.today() + timedelta(days=3 * phase.order)
        phase.assigned_to_id = team["designer"].id
        phase.assigned_to_name = team["designer"].name

    kickoff = project.phases[0]
    kickoff.deliverables[0].link = "https://docs.northwind.io/kickoff"
    kickoff.deliverables[0].link_type = "web"
    kickoff.deliverables[0].status = "ready_for_review"

    db.flush()
    db.add(Message(
        project=project,
        phase_id=kickoff.id,
        sender_id=users["admin"].id,
        content="Kickoff started. Please review the scope and timelines.",
        message_type="system"
    ))
    db.commit()

    # Kickoff goes to the client for sign-off
    service = ApprovalService(db)
    service.transition_phase(kickoff.id, PhaseAction.SUBMIT_FOR_APPROVAL, users["pm"])
    service.request_approval(kickoff.id, users["pm"])

    logger.info(f"Created project {project.project_code} with {len(project.phases)} phases")


def main() -> None:
    init_db()
    with get_db_session() as db:
        seed(db)
    logger.info("Seed data created successfully!")


if __name__ == "__main__":
    main()
