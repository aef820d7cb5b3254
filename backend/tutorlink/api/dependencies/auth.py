# backend/tutorlink/api/dependencies/auth.py
"""
Caller identity.

Authentication happens upstream; the gateway forwards the authenticated
user's id in the ``X-User-Id`` header. This module only loads that user and
enforces the account flags every session endpoint relies on.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ...models.user import User
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


def get_current_user(
    x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the calling user.

    Raises:
        HTTPException: 401 when the header is missing, the user is unknown
            or deactivated; 403 when the account is not verified
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    user = RepositoryFactory.create_tutor_repository(db).get_by_id(user_id)
    if user is None or user.is_deactivated:
        logger.info(f"Rejected request for unknown or deactivated user {user_id}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    if not user.is_verified:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not verified")
    return user


def get_current_tutor(user: User = Depends(get_current_user)) -> User:
    """
    Raises:
        HTTPException: 403 if the user is not an approved tutor
    """
    if not user.is_tutor_approved:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a tutor")
    return user
