"""
Project Pydantic Schemas
File: app/api/api_v1/projects/schemas.py
"""

from pydantic import BaseModel, EmailStr, Field, validator
from typing import List, Literal, Optional
from datetime import date

ProjectStatus = Literal["active", "at_risk", "completed", "archived"]

SORTABLE_FIELDS = {
    "created_date": "created_at",
    "updated_date": "updated_at",
    "name": "name",
    "target_completion_date": "target_completion_date",
    "progress_percentage": "progress_percentage",
}


class ProjectCreate(BaseModel):
    """Schema for creating a project. progress_percentage is derived and never accepted."""
    name: str = Field(..., min_length=1, max_length=255)
    client_name: Optional[str] = Field(None, max_length=255)
    client_email: Optional[EmailStr] = None
    suite_type: Optional[str] = Field(None, max_length=100)
    status: ProjectStatus = "active"
    target_completion_date: Optional[date] = None
    internal_notes: Optional[str] = None
    tags: List[str] = []
    project_code: Optional[str] = Field(None, min_length=1, max_length=32)
    assigned_pm_id: Optional[int] = None
    template_id: Optional[int] = Field(None, description="Instantiate phases and deliverables from this template")

    @validator('client_email')
    def normalize_email(cls, v):
        return v.lower() if v else v

    @validator('project_code')
    def normalize_code(cls, v):
        return v.strip().upper() if v else v

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Brand Launch",
                "client_name": "Northwind Traders",
                "client_email": "owner@northwind.io",
                "suite_type": "launch",
                "target_completion_date": "2026-12-01",
                "tags": ["priority"],
                "template_id": 1
            }
        }


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    client_name: Optional[str] = None
    client_email: Optional[EmailStr] = None
    suite_type: Optional[str] = None
    status: Optional[ProjectStatus] = None
    target_completion_date: Optional[date] = None
    internal_notes: Optional[str] = None
    tags: Optional[List[str]] = None
    project_code: Optional[str] = Field(None, min_length=1, max_length=32)
    assigned_pm_id: Optional[int] = None

    @validator('client_email')
    def normalize_email(cls, v):
        return v.lower() if v else v

    @validator('project_code')
    def normalize_code(cls, v):
        return v.strip().upper() if v else v
