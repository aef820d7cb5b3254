# backend/tutorlink/routes/v1/sessions.py
"""
Session endpoints - API v1

Student and participant operations under /api/v1/sessions. All business
logic is delegated to BookingService and SessionLifecycleService.

Endpoints:
    POST /book - Book a session with an automatically chosen tutor
    GET /my - Sessions the caller takes part in
    GET /{session_id} - One session
    POST /{session_id}/proposal - Propose a new time
    POST /{session_id}/proposal/accept - Accept the pending proposal
    POST /{session_id}/proposal/reject - Reject the pending proposal
    POST /{session_id}/cancel - Cancel the session
    POST /{session_id}/check-conflict - Preview a reschedule
    GET /{session_id}/invite.ics - Calendar invite for the caller
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Response, status

from ...api.dependencies.auth import get_current_user
from ...api.dependencies.services import (
    get_booking_service,
    get_calendar_invite_service,
    get_session_lifecycle_service,
)
from ...core.enums import InviteMethod, SessionStatus
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.session import (
    BookSessionRequest,
    CancelSessionRequest,
    CheckConflictRequest,
    ConflictCheckResponse,
    ProposeRescheduleRequest,
    SessionListResponse,
    SessionResponse,
)
from ...services.booking_service import BookingService
from ...services.calendar_invite import CalendarInviteService
from ...services.session_lifecycle import SessionLifecycleService
from .common import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["sessions-v1"])

SESSION_ID_PATH = Path(..., description="Session ULID", pattern=ULID_PATH_PATTERN)


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.post("/book", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def book_session(
    payload: BookSessionRequest = Body(...),
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> SessionResponse:
    """
    Book a session. Without ``tutor_id`` the server picks the least busy
    eligible tutor.

    Conflicts come back as 409 with ``STUDENT_CONFLICT``, ``TUTOR_CONFLICT``,
    ``NO_TUTOR``, ``NOT_AVAILABLE`` or ``SLOT_TAKEN`` in ``detail.code``.
    """
    try:
        session = await asyncio.to_thread(
            booking_service.book_session,
            student_id=current_user.id,
            subject_id=payload.subject_id,
            scheduled_at=payload.scheduled_at,
            duration_min=payload.duration_min,
            tutor_id=payload.tutor_id,
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/my", response_model=SessionListResponse)
async def list_my_sessions(
    status_filter: Optional[SessionStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionListResponse:
    """Sessions where the caller is the student or the tutor, soonest first."""
    sessions = await asyncio.to_thread(
        lifecycle.list_sessions_for_user, current_user.id, status_filter, limit
    )
    items = [SessionResponse.model_validate(s) for s in sessions]
    return SessionListResponse(items=items, total=len(items))


# ============================================================================
# SECTION 2: Routes with a session id
# ============================================================================


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str = SESSION_ID_PATH,
    current_user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(lifecycle.get_session, current_user.id, session_id)
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/proposal", response_model=SessionResponse)
async def propose_reschedule(
    session_id: str = SESSION_ID_PATH,
    payload: ProposeRescheduleRequest = Body(...),
    current_user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionResponse:
    """Propose a new time; the other participant must accept it."""
    try:
        session = await asyncio.to_thread(
            lifecycle.propose_reschedule,
            current_user.id,
            session_id,
            payload.proposed_at,
            payload.proposed_end_at,
            payload.note,
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/proposal/accept", response_model=SessionResponse)
async def accept_proposal(
    session_id: str = SESSION_ID_PATH,
    current_user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(lifecycle.accept_proposal, current_user.id, session_id)
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/proposal/reject", response_model=SessionResponse)
async def reject_proposal(
    session_id: str = SESSION_ID_PATH,
    current_user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(lifecycle.reject_proposal, current_user.id, session_id)
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/cancel", response_model=SessionResponse)
async def cancel_session(
    session_id: str = SESSION_ID_PATH,
    payload: Optional[CancelSessionRequest] = Body(None),
    current_user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> SessionResponse:
    reason = payload.reason if payload else None
    try:
        session = await asyncio.to_thread(
            lifecycle.cancel_session, current_user.id, session_id, reason
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/check-conflict", response_model=ConflictCheckResponse)
async def check_reschedule_conflict(
    session_id: str = SESSION_ID_PATH,
    payload: CheckConflictRequest = Body(...),
    current_user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle_service),
) -> ConflictCheckResponse:
    try:
        report = await asyncio.to_thread(
            lifecycle.check_reschedule_conflicts,
            current_user.id,
            session_id,
            payload.scheduled_at,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ConflictCheckResponse(
        student_conflict=report.student_conflict,
        tutor_conflict=report.tutor_conflict,
        has_conflict=report.has_conflict,
    )


@router.get("/{session_id}/invite.ics", response_class=Response)
async def download_invite(
    session_id: str = SESSION_ID_PATH,
    current_user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle_service),
    invite_service: CalendarInviteService = Depends(get_calendar_invite_service),
) -> Response:
    """The caller's calendar invite; a CANCEL invite once the session is cancelled."""
    try:
        session = await asyncio.to_thread(lifecycle.get_session, current_user.id, session_id)
    except DomainException as e:
        handle_domain_exception(e)

    method = (
        InviteMethod.CANCEL
        if session.status == SessionStatus.CANCELLED.value
        else InviteMethod.REQUEST
    )
    invite = invite_service.build_session_invite(session, method, current_user)
    return Response(
        content=invite.body,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{invite.filename}"'},
    )
