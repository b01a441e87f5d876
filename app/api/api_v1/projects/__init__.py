"""
Projects API Package
"""
from fastapi import APIRouter

router = APIRouter(tags=["projects"])

# Import and include the projects endpoints router under its prefix
from app.api.api_v1.projects.projects import router as projects_endpoints
router.include_router(projects_endpoints, prefix="/api/projects")

__all__ = ["router"]
