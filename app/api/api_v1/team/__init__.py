"""
Team Module Init
File: app/api/api_v1/team/__init__.py
"""

from fastapi import APIRouter
from . import team_members

router = APIRouter()

router.include_router(team_members.router)
