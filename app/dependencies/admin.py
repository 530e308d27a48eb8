import logging

from fastapi import Depends, HTTPException, status

from app.models.user import User
from app.utils.token import get_current_user

logger = logging.getLogger(__name__)

ADMIN_ROLES = {"admin", "superadmin"}


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Gate for purchase / subscription back-office routes."""
    if current_user.role not in ADMIN_ROLES:
        logger.warning(f"User {current_user.id} ({current_user.role}) denied admin access")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user
