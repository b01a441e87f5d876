"""
Template Pydantic Schemas
File: app/api/api_v1/templates/schemas.py
"""

from pydantic import BaseModel, Field, validator
from typing import List, Optional


class TemplateDeliverable(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    order: int = Field(0, ge=0)
    description: Optional[str] = None
    link_type: Optional[str] = "other"


class TemplatePhase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    order: int = Field(..., ge=1, description="1-based position of the phase")
    description: Optional[str] = None
    deliverables: List[TemplateDeliverable] = []


def _check_phase_orders(phases):
    orders = [phase.order for phase in phases]
    if len(orders) != len(set(orders)):
        raise ValueError("Duplicate phase orders are not allowed")
    if orders and sorted(orders) != list(range(1, len(orders) + 1)):
        raise ValueError("Phase orders must run 1..n without gaps")
    return phases


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    suite_type: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    phases: List[TemplatePhase] = []

    @validator('phases')
    def validate_phases(cls, v):
        """Validate phases have unique, contiguous orders"""
        return _check_phase_orders(v)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Launch Suite",
                "suite_type": "launch",
                "phases": [
                    {"name": "Discovery", "order": 1, "deliverables": [{"name": "Brief", "order": 1}]},
                    {"name": "Design", "order": 2},
                    {"name": "Launch", "order": 3}
                ]
            }
        }


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    suite_type: Optional[str] = None
    description: Optional[str] = None
    phases: Optional[List[TemplatePhase]] = None

    @validator('phases')
    def validate_phases(cls, v):
        if v is None:
            return v
        return _check_phase_orders(v)
