"""
Test fixtures for the client delivery API.

Provides:
- An in-memory SQLite database, rebuilt for every test
- Seeded users for each role and a header helper to act as them
- A project builder with phases in any mix of statuses
"""

import os

# Must be set before app.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Generator, Sequence

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.database import SessionLocal, drop_all_tables, init_db
from app.main import app
from app.models.phase import Phase
from app.models.project import Project
from app.models.template import Template
from app.models.user import TeamMember, User
from app.services.project_service import ProjectService

ADMIN_EMAIL = "admin@deliverystudio.io"
PM_EMAIL = "pm@deliverystudio.io"
CLIENT_EMAIL = "client@northwind.io"
OTHER_CLIENT_EMAIL = "buyer@contoso.io"


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Fresh schema per test."""
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        drop_all_tables()


@pytest.fixture
def users(db: Session) -> dict:
    """One user per role plus a second client who owns nothing."""
    records = {
        "admin": User(email=ADMIN_EMAIL, full_name="Studio Admin", role="admin"),
        "pm": User(email=PM_EMAIL, full_name="Project Manager", role="pm"),
        "client": User(email=CLIENT_EMAIL, full_name="Demo Client", role="client"),
        "other_client": User(email=OTHER_CLIENT_EMAIL, full_name="Other Client", role="client"),
    }
    db.add_all(records.values())
    db.commit()
    return records


@pytest.fixture
def client(users) -> TestClient:
    """FastAPI test client; the users fixture guarantees tables and callers exist."""
    return TestClient(app)


@pytest.fixture
def auth(users):
    """auth("pm") -> request headers that identify the seeded user with that role."""

    def _headers(role: str) -> dict:
        return {"X-User-Email": users[role].email}

    return _headers


@pytest.fixture
def designer(db: Session) -> TeamMember:
    member = TeamMember(email="designer@deliverystudio.io", name="Designer", role="designer")
    db.add(member)
    db.commit()
    return member


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def make_project(db: Session):
    """Build a committed project whose phases have the given statuses, in order."""

    def _make(
        statuses: Sequence[str] = ("in_progress", "not_started", "not_started"),
        client_email: str = CLIENT_EMAIL,
        name: str = "Brand Launch",
        **fields
    ) -> Project:
        project = Project(
            name=name,
            project_code=ProjectService.generate_project_code(db),
            client_email=client_email,
            client_name="Northwind Traders",
            status=fields.pop("status", "active"),
            tags=[],
            **fields
        )
        for order, status in enumerate(statuses, start=1):
            project.phases.append(Phase(name=f"Phase {order}", order=order, status=status))

        db.add(project)
        ProjectService.refresh_progress(project)
        db.commit()
        return project

    return _make


@pytest.fixture
def launch_template(db: Session) -> Template:
    template = Template(
        name="Launch Suite Template",
        suite_type="launch",
        description="Standard Launch Suite delivery template",
        phases=[
            {
                "name": "Discovery & Kickoff",
                "order": 1,
                "deliverables": [
                    {"name": "Kickoff notes", "order": 1},
                    {"name": "Requirements summary", "order": 2},
                ],
            },
            {"name": "Branding", "order": 2, "deliverables": [{"name": "Logo concepts", "order": 1}]},
            {"name": "Website", "order": 3, "deliverables": []},
        ]
    )
    db.add(template)
    db.commit()
    return template
