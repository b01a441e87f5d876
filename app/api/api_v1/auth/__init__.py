"""
Auth API Package
"""
from app.api.api_v1.auth.session import router

__all__ = ["router"]
