"""
Approval Pydantic Schemas
File: app/api/api_v1/approvals/schemas.py
"""

from pydantic import BaseModel, Field, validator
from typing import Optional


class ApprovalCreate(BaseModel):
    """Open an approval request on a phase that is awaiting approval"""
    phase_id: int
    project_id: Optional[int] = None


class ApprovalResolve(BaseModel):
    status: str = Field(..., description="approved or rejected")
    feedback: Optional[str] = None

    @validator('status')
    def normalize_status(cls, v):
        return v.strip().lower()

    class Config:
        json_schema_extra = {
            "example": {
                "status": "rejected",
                "feedback": "needs revisions"
            }
        }
