# =====================================================
# FILE: app/models/phase.py
# Project phases (ordered, approval-gated)
# =====================================================

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Text, Date, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.database import Base
from app.utils.datetime_helpers import format_datetime_to_iso, format_date


class Phase(Base):
    """
    One step of a project's delivery sequence.

    `order` is 1-based and unique within a project. `status` is only changed
    through the lifecycle engine (app/services/phase_lifecycle.py). `version`
    is the optimistic lock that serializes concurrent approvals.
    """

    __tablename__ = "phases"
    __table_args__ = (
        UniqueConstraint("project_id", "order", name="uq_phases_project_order"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    order = Column("order", Integer, nullable=False)
    status = Column(String(50), nullable=False, default="not_started")
    description = Column(Text)
    due_date = Column(Date)

    approved_at = Column(DateTime)
    approved_by = Column(String(255))

    assigned_to_id = Column(Integer, ForeignKey("team_members.id", ondelete="SET NULL"), nullable=True)
    assigned_to_name = Column(String(255))

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    project = relationship("Project", back_populates="phases")
    assigned_to = relationship("TeamMember")
    deliverables = relationship(
        "Deliverable",
        back_populates="phase",
        order_by="Deliverable.order",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    approvals = relationship(
        "Approval",
        back_populates="phase",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def __repr__(self):
        return f"<Phase(id={self.id}, project_id={self.project_id}, order={self.order}, status='{self.status}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "order": self.order,
            "status": self.status,
            "description": self.description,
            "due_date": format_date(self.due_date),
            "approved_at": format_datetime_to_iso(self.approved_at),
            "approved_by": self.approved_by,
            "assigned_to_id": self.assigned_to_id,
            "assigned_to": self.assigned_to.email if self.assigned_to else None,
            "assigned_to_name": self.assigned_to_name or (self.assigned_to.name if self.assigned_to else None),
            "created_date": format_datetime_to_iso(self.created_at),
            "updated_date": format_datetime_to_iso(self.updated_at),
        }
