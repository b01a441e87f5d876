# =====================================================
# FILE: app/core/dependencies.py
# Caller identity resolution
# =====================================================

from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
import logging

from app.core.config import settings
from app.core.database import get_db
from app.models.user import User

logger = logging.getLogger(__name__)

IDENTITY_HEADER = "X-User-Email"


def _identity_email(request: Request) -> Optional[str]:
    """
    Email asserted by the upstream identity provider, either as a header
    or as the session cookie it sets.
    """
    email = request.headers.get(IDENTITY_HEADER) or request.cookies.get(settings.SESSION_COOKIE_NAME)
    if email:
        return email.strip().lower()
    return None


async def get_current_user(
    request: Request,
    db: Session = Depends(get_db)
) -> User:
    """
    Resolve the calling user. Handlers pass the returned user explicitly
    into service operations.
    """
    email = _identity_email(request)
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    user = db.query(User).filter(User.email == email).first()
    if not user or not user.is_active:
        logger.warning(f"Rejected identity {email}: unknown or inactive user")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    request.state.user_email = user.email
    return user
