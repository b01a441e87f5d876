"""
Deliverable Pydantic Schemas
File: app/api/api_v1/deliverables/schemas.py
"""

from pydantic import BaseModel, Field
from typing import Literal, Optional

DeliverableStatus = Literal["draft", "ready_for_review", "updated"]
LinkType = Literal["figma", "drive", "web", "other"]


class DeliverableCreate(BaseModel):
    project_id: int
    phase_id: int
    name: str = Field(..., min_length=1, max_length=255)
    link: Optional[str] = None
    link_type: LinkType = "other"
    status: DeliverableStatus = "draft"
    description: Optional[str] = None
    order: int = Field(0, ge=0)


class DeliverableUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    link: Optional[str] = None
    link_type: Optional[LinkType] = None
    status: Optional[DeliverableStatus] = None
    description: Optional[str] = None
    order: Optional[int] = Field(None, ge=0)
