"""
Phase Pydantic Schemas
File: app/api/api_v1/phases/schemas.py
"""

from pydantic import BaseModel, Field, validator
from typing import Optional
from datetime import date


class PhaseCreate(BaseModel):
    """New phases always start as not_started"""
    project_id: int
    name: str = Field(..., min_length=1, max_length=255)
    order: Optional[int] = Field(None, ge=1, description="Defaults to the next free ordinal")
    description: Optional[str] = None
    due_date: Optional[date] = None
    assigned_to_id: Optional[int] = None
    assigned_to_name: Optional[str] = Field(None, max_length=255)


class PhaseUpdate(BaseModel):
    """Descriptive fields only. Status moves through /transition."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    order: Optional[int] = Field(None, ge=1)
    description: Optional[str] = None
    due_date: Optional[date] = None
    assigned_to_id: Optional[int] = None
    assigned_to_name: Optional[str] = Field(None, max_length=255)
    status: Optional[str] = None


class PhaseTransition(BaseModel):
    action: str = Field(..., description="start, submit_for_approval, approve, request_changes or resume")
    feedback: Optional[str] = None

    @validator('action')
    def strip_action(cls, v):
        return v.strip()

    class Config:
        json_schema_extra = {
            "example": {
                "action": "request_changes",
                "feedback": "needs revisions"
            }
        }
