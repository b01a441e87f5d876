from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.database import Base
from app.utils.datetime_helpers import format_datetime_to_iso

DELIVERABLE_STATUSES = ("draft", "ready_for_review", "updated")


class Deliverable(Base):
    __tablename__ = "deliverables"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    link = Column(Text)
    link_type = Column(String(50), default="other")
    status = Column(String(50), nullable=False, default="draft")
    description = Column(Text)
    order = Column("order", Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="deliverables")
    phase = relationship("Phase", back_populates="deliverables")

    def __repr__(self):
        return f"<Deliverable(id={self.id}, name='{self.name}', status='{self.status}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "phase_id": self.phase_id,
            "name": self.name,
            "link": self.link,
            "link_type": self.link_type,
            "status": self.status,
            "description": self.description,
            "order": self.order,
            "created_date": format_datetime_to_iso(self.created_at),
            "updated_date": format_datetime_to_iso(self.updated_at),
        }
