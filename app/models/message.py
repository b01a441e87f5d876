# =====================================================
# FILE: app/models/message.py
# Project/phase messages with a reply-to pointer
# =====================================================

from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.database import Base
from app.utils.datetime_helpers import format_datetime_to_iso

MESSAGE_TYPES = ("user", "system")


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id", ondelete="CASCADE"), nullable=True, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    content = Column(Text, nullable=False)
    message_type = Column(String(50), nullable=False, default="user")
    is_resolved = Column(Boolean, nullable=False, default=False)

    # Weak reference: resolved by id lookup, no relationship and no FK ownership
    reply_to_id = Column(Integer, nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="messages")
    sender = relationship("User")

    def __repr__(self):
        return f"<Message(id={self.id}, project_id={self.project_id}, type='{self.message_type}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "phase_id": self.phase_id,
            "sender_email": self.sender.email if self.sender else None,
            "sender_name": self.sender.full_name if self.sender else None,
            "content": self.content,
            "message_type": self.message_type,
            "is_resolved": self.is_resolved,
            "reply_to_id": self.reply_to_id,
            "created_date": format_datetime_to_iso(self.created_at),
            "updated_date": format_datetime_to_iso(self.updated_at),
        }
