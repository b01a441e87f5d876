# =====================================================
# FILE: app/models/approval.py
# Approval request/response cycle tied to a phase
# =====================================================

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.database import Base
from app.utils.datetime_helpers import format_datetime_to_iso

APPROVAL_STATUSES = ("pending", "approved", "rejected")


class Approval(Base):
    __tablename__ = "approvals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id", ondelete="CASCADE"), nullable=False, index=True)

    requested_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    requested_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    status = Column(String(50), nullable=False, default="pending", index=True)
    feedback = Column(Text)

    responded_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    responded_at = Column(DateTime)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    project = relationship("Project", back_populates="approvals")
    phase = relationship("Phase", back_populates="approvals")
    requested_by = relationship("User", foreign_keys=[requested_by_id])
    responded_by = relationship("User", foreign_keys=[responded_by_id])

    def __repr__(self):
        return f"<Approval(id={self.id}, phase_id={self.phase_id}, status='{self.status}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "phase_id": self.phase_id,
            "requested_at": format_datetime_to_iso(self.requested_at),
            "requested_by": self.requested_by.email if self.requested_by else None,
            "status": self.status,
            "responded_at": format_datetime_to_iso(self.responded_at),
            "responded_by": self.responded_by.email if self.responded_by else None,
            "feedback": self.feedback,
            "project_name": self.project.name if self.project else None,
            "phase_name": self.phase.name if self.phase else None,
            "created_date": format_datetime_to_iso(self.created_at),
            "updated_date": format_datetime_to_iso(self.updated_at),
        }
