"""
Project Model
File: app/models/project.py
"""

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Text, Date, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.database import Base
from app.utils.datetime_helpers import format_datetime_to_iso, format_date

PROJECT_STATUSES = ("active", "at_risk", "completed", "archived")


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_code = Column(String(32), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)

    # Client identity
    client_name = Column(String(255))
    client_email = Column(String(255), index=True)

    suite_type = Column(String(100))
    status = Column(String(50), nullable=False, default="active")

    # Derived from phase statuses, never written by clients
    progress_percentage = Column(Integer, nullable=False, default=0)

    target_completion_date = Column(Date)
    internal_notes = Column(Text)
    tags = Column(JSON)

    assigned_pm_id = Column(Integer, ForeignKey("team_members.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    assigned_pm = relationship("TeamMember")
    phases = relationship(
        "Phase",
        back_populates="project",
        order_by="Phase.order",
        cascade="all, delete-orphan"
    )
    deliverables = relationship("Deliverable", back_populates="project", cascade="all, delete-orphan")
    approvals = relationship("Approval", back_populates="project", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="project", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Project(id={self.id}, code='{self.project_code}', status='{self.status}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "suite_type": self.suite_type,
            "status": self.status,
            "progress_percentage": self.progress_percentage,
            "target_completion_date": format_date(self.target_completion_date),
            "internal_notes": self.internal_notes,
            "tags": self.tags or [],
            "project_code": self.project_code,
            "assigned_pm_id": self.assigned_pm_id,
            "assigned_pm": self.assigned_pm.email if self.assigned_pm else None,
            "created_date": format_datetime_to_iso(self.created_at),
            "updated_date": format_datetime_to_iso(self.updated_at),
        }
