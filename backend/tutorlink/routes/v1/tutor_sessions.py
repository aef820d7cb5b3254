# backend/tutorlink/routes/v1/tutor_sessions.py
"""
Tutor session endpoints - API v1

Tutor-side transitions under /api/v1/tutor/sessions.

Endpoints:
    POST /{session_id}/accept - Accept a pending request
    POST /{session_id}/reject - Decline a pending request
    POST /{session_id}/complete - Mark an ended session as complete
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Path

from ...api.dependencies.auth import get_current_tutor
from ...api.dependencies.services import get_session_lifecycle_service
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.session import RejectSessionRequest, SessionResponse
from ...services.session_lifecycle import SessionLifecycleService
from .common import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tutor-sessions-v1"])

SESSION_ID_PATH = Path(..., description="Session ULID", pattern=ULID_PATH_PATTERN)


@router.post("/{session_id}/accept", response_model=SessionResponse)
async def accept_session(
    session_id: str = SESSION_ID_PATH,
    current_user: User = Depends(get_current_tutor),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionResponse:
    """Accept a PENDING session; 409 ``TUTOR_CONFLICT`` if the tutor is now busy."""
    try:
        session = await asyncio.to_thread(lifecycle.accept_session, current_user.id, session_id)
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/reject", response_model=SessionResponse)
async def reject_session(
    session_id: str = SESSION_ID_PATH,
    payload: Optional[RejectSessionRequest] = Body(None),
    current_user: User = Depends(get_current_tutor),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionResponse:
    reason = payload.reason if payload else None
    try:
        session = await asyncio.to_thread(
            lifecycle.reject_session, current_user.id, session_id, reason
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/complete", response_model=SessionResponse)
async def complete_session(
    session_id: str = SESSION_ID_PATH,
    current_user: User = Depends(get_current_tutor),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionResponse:
    """Complete an ACCEPTED session; 409 ``TOO_EARLY`` before it ends."""
    try:
        session = await asyncio.to_thread(
            lifecycle.complete_session, current_user.id, session_id
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)
