from sqlalchemy import Column, String, DateTime, Integer, Text, JSON
from datetime import datetime

from app.core.database import Base
from app.utils.datetime_helpers import format_datetime_to_iso


class Template(Base):
    """Reusable phase plan: phases is a list of {name, order, description, deliverables}."""

    __tablename__ = "templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    suite_type = Column(String(100))
    description = Column(Text)
    phases = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "suite_type": self.suite_type,
            "description": self.description,
            "phases": self.phases or [],
            "created_date": format_datetime_to_iso(self.created_at),
            "updated_date": format_datetime_to_iso(self.updated_at),
        }
