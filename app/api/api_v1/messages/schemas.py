"""
Message Pydantic Schemas
File: app/api/api_v1/messages/schemas.py
"""

from pydantic import BaseModel, Field, validator
from typing import Literal, Optional


class MessageCreate(BaseModel):
    project_id: int
    phase_id: Optional[int] = None
    content: str = Field(..., min_length=1)
    message_type: Literal["user", "system"] = "user"
    reply_to_id: Optional[int] = Field(None, description="Message being answered; must be in the same project")

    @validator('content')
    def content_not_blank(cls, v):
        if not v.strip():
            raise ValueError('Message content cannot be blank')
        return v


class MessageUpdate(BaseModel):
    content: Optional[str] = Field(None, min_length=1)
    is_resolved: Optional[bool] = None
