# backend/tutorlink/services/session_lifecycle.py
"""
Session Lifecycle Service for TutorLink

Drives a session through PENDING -> ACCEPTED -> COMPLETED, with
cancellation from either active state, and runs the reschedule proposal
sub-protocol:

- Either participant may propose a new time while the session is active.
- Only the other participant may accept or reject it.
- Accepting re-checks both parties for conflicts and the tutor's declared
  availability against current data, then moves the session and re-opens
  it for tutor acceptance.

Every transition re-validates inside its own transaction. Notifications
and calendar invites go out only after the commit and never fail the
transition.
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import InviteMethod, ProposalStatus, SessionStatus
from ..core.exceptions import (
    ForbiddenException,
    NotEligibleException,
    NotFoundException,
    StateException,
    ValidationException,
)
from ..core.timezone_utils import same_calendar_day, to_operating_naive
from ..models.tutoring_session import TutoringSession
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from ..repositories.tutor_repository import TutorRepository
from .availability import parse_availability
from .base import BaseService
from .calendar_invite import CalendarInviteService
from .conflict_checker import ConflictChecker, ConflictReport
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

DEFAULT_REJECT_REASON = "Rejected by tutor"
MAX_NOTE_LENGTH = 500
NOT_AVAILABLE_MESSAGE = "The tutor is not available at the proposed time."


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class SessionLifecycleService(BaseService):
    """State machine for booked sessions."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        notification_service: Optional[NotificationService] = None,
        invite_service: Optional[CalendarInviteService] = None,
        session_repository: Optional[SessionRepository] = None,
        tutor_repository: Optional[TutorRepository] = None,
    ):
        super().__init__(db, clock)
        self.session_repository = (
            session_repository or RepositoryFactory.create_session_repository(db)
        )
        self.tutor_repository = tutor_repository or RepositoryFactory.create_tutor_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(
            db, clock=self.clock, repository=self.session_repository
        )
        self.notification_service = notification_service or NotificationService(
            db, clock=self.clock
        )
        self.invite_service = invite_service or CalendarInviteService(db, clock=self.clock)

    # Loading helpers

    def _load_for_participant(
        self, user_id: str, session_id: str, for_update: bool = False
    ) -> TutoringSession:
        """
        Sessions the user is not part of are reported as missing so their
        existence does not leak.
        """
        if for_update:
            session = self.session_repository.get_for_update(session_id)
        else:
            session = self.session_repository.get_by_id(session_id)
        if session is None or not session.involves(user_id):
            raise NotFoundException("Session not found")
        return session

    def _load_for_tutor(self, tutor_id: str, session_id: str) -> TutoringSession:
        session = self.session_repository.get_for_update(session_id)
        if session is None or session.tutor_id != tutor_id:
            raise NotFoundException("Session not found")
        return session

    def _record_transition(self, transition: str, session: TutoringSession) -> None:
        self.log_operation(transition, session_id=session.id, status=session.status)
        prometheus_metrics.inc_session_transition(transition)

    # Reads

    def get_session(self, user_id: str, session_id: str) -> TutoringSession:
        return self._load_for_participant(user_id, session_id)

    def list_sessions_for_user(
        self,
        user_id: str,
        status: Optional[SessionStatus] = None,
        limit: int = 100,
    ) -> List[TutoringSession]:
        return self.session_repository.list_for_user(user_id, status=status, limit=limit)

    # Tutor transitions

    @BaseService.measure_operation("accept_session")
    def accept_session(self, tutor_id: str, session_id: str) -> TutoringSession:
        """
        Tutor accepts a PENDING session.

        Raises:
            NotFoundException: session missing or assigned to another tutor
            StateException: ``WRONG_STATUS`` unless PENDING
            ConflictException: ``TUTOR_CONFLICT`` if the tutor became busy
        """
        with self.transaction():
            session = self._load_for_tutor(tutor_id, session_id)
            if session.status != SessionStatus.PENDING.value:
                raise StateException(
                    f"Cannot accept a session that is {session.status.lower()}",
                    code=StateException.WRONG_STATUS,
                )
            self.tutor_repository.lock_tutor(tutor_id)
            self.conflict_checker.ensure_tutor_free(
                tutor_id, session.scheduled_at, session.ends_at, exclude_session_id=session.id
            )
            session.accept(self.clock.now())

        self._record_transition("accept", session)
        self.notification_service.booking_confirmed(session)
        self.invite_service.emit_session_invites(session, InviteMethod.REQUEST)
        return session

    @BaseService.measure_operation("reject_session")
    def reject_session(
        self, tutor_id: str, session_id: str, reason: Optional[str] = None
    ) -> TutoringSession:
        """Tutor declines a PENDING request; the session ends up CANCELLED."""
        with self.transaction():
            session = self._load_for_tutor(tutor_id, session_id)
            if session.status != SessionStatus.PENDING.value:
                raise StateException(
                    f"Cannot reject a session that is {session.status.lower()}",
                    code=StateException.WRONG_STATUS,
                )
            session.cancel(tutor_id, self.clock.now(), _clean_text(reason) or DEFAULT_REJECT_REASON)

        self._record_transition("reject", session)
        self.notification_service.session_cancelled(session, tutor_id, session.cancel_reason)
        return session

    @BaseService.measure_operation("complete_session")
    def complete_session(self, tutor_id: str, session_id: str) -> TutoringSession:
        """
        Tutor marks an ACCEPTED session as done once it has ended.

        Raises:
            StateException: ``WRONG_STATUS`` unless ACCEPTED,
                ``TOO_EARLY`` before the session's end time
        """
        with self.transaction():
            session = self._load_for_tutor(tutor_id, session_id)
            if session.status != SessionStatus.ACCEPTED.value:
                raise StateException(
                    "Only accepted sessions can be completed",
                    code=StateException.WRONG_STATUS,
                )
            now = self.clock.now()
            if now < session.ends_at:
                raise StateException(
                    "Session has not ended yet",
                    code=StateException.TOO_EARLY,
                    details={"ends_at": session.ends_at.isoformat()},
                )
            session.complete(now)

        self._record_transition("complete", session)
        self.notification_service.session_completed(session, auto=False)
        return session

    # Participant transitions

    @BaseService.measure_operation("cancel_session")
    def cancel_session(
        self, by_user_id: str, session_id: str, reason: Optional[str] = None
    ) -> TutoringSession:
        """
        Student or tutor cancels an active session.

        Raises:
            StateException: ``WRONG_STATUS`` if already completed or cancelled
        """
        with self.transaction():
            session = self._load_for_participant(by_user_id, session_id, for_update=True)
            if not session.is_active:
                raise StateException(
                    f"Cannot cancel a session that is {session.status.lower()}",
                    code=StateException.WRONG_STATUS,
                )
            session.cancel(by_user_id, self.clock.now(), _clean_text(reason))
            session.calendar_sequence = (session.calendar_sequence or 0) + 1

        self._record_transition("cancel", session)
        self.notification_service.session_cancelled(session, by_user_id, session.cancel_reason)
        self.invite_service.emit_session_invites(session, InviteMethod.CANCEL)
        return session

    def _validate_proposed_range(
        self,
        session: TutoringSession,
        new_start: datetime,
        new_end: Optional[datetime],
    ) -> tuple[datetime, datetime]:
        start = to_operating_naive(new_start)
        duration = timedelta(minutes=session.duration_min)
        end = to_operating_naive(new_end) if new_end is not None else start + duration

        earliest = self.clock.now() + timedelta(minutes=settings.booking_safety_margin_minutes)
        if start < earliest:
            raise ValidationException(
                f"Proposed time must be at least {settings.booking_safety_margin_minutes} "
                "minutes in the future"
            )
        if end - start != duration:
            raise ValidationException(
                "Proposed time must keep the session length",
                details={"duration_min": session.duration_min},
            )
        if not same_calendar_day(start, end):
            raise ValidationException("Proposed session must start and end on the same day")
        return start, end

    @BaseService.measure_operation("propose_reschedule")
    def propose_reschedule(
        self,
        by_user_id: str,
        session_id: str,
        new_start: datetime,
        new_end: Optional[datetime] = None,
        note: Optional[str] = None,
    ) -> TutoringSession:
        """
        Record a proposal to move the session; a newer proposal replaces a
        pending one.

        Raises:
            StateException: ``WRONG_STATUS`` if the session is closed or has ended
            ValidationException: start too soon, changed length or crosses midnight
        """
        note = _clean_text(note)
        if note and len(note) > MAX_NOTE_LENGTH:
            raise ValidationException(f"Note must be at most {MAX_NOTE_LENGTH} characters")

        with self.transaction():
            session = self._load_for_participant(by_user_id, session_id, for_update=True)
            if not session.is_active:
                raise StateException(
                    "Cannot reschedule a closed session", code=StateException.WRONG_STATUS
                )
            if self.clock.now() >= session.ends_at:
                raise StateException(
                    "Cannot reschedule a session that has already ended",
                    code=StateException.WRONG_STATUS,
                )
            start, end = self._validate_proposed_range(session, new_start, new_end)
            session.set_proposal(by_user_id, start, end, note)

        self.log_operation("propose_reschedule", session_id=session.id, by_user_id=by_user_id)
        self.notification_service.proposal_sent(session, by_user_id)
        return session

    def _load_pending_proposal(self, by_user_id: str, session_id: str) -> TutoringSession:
        session = self._load_for_participant(by_user_id, session_id, for_update=True)
        if not session.has_pending_proposal:
            raise StateException("There is no pending proposal", code=StateException.NO_PROPOSAL)
        if session.proposed_by_user_id == by_user_id:
            raise ForbiddenException("Only the other participant can respond to this proposal")
        if not session.is_active:
            raise StateException(
                "Cannot respond to a proposal on a closed session",
                code=StateException.WRONG_STATUS,
            )
        return session

    def _ensure_tutor_declared(self, tutor_id: str, start: datetime, end: datetime) -> None:
        availability = parse_availability(self.tutor_repository.get_availability_raw(tutor_id))
        if availability is None or not availability.fits(start, end):
            raise NotEligibleException(
                NOT_AVAILABLE_MESSAGE, code=NotEligibleException.NOT_AVAILABLE
            )

    @BaseService.measure_operation("accept_proposal")
    def accept_proposal(self, by_user_id: str, session_id: str) -> TutoringSession:
        """
        Counterpart accepts the pending proposal.

        The session moves to the proposed range and goes back to PENDING so
        the tutor confirms the new time. Nothing is changed when a check
        fails.

        Raises:
            StateException: ``NO_PROPOSAL`` when nothing is pending
            ConflictException: ``STUDENT_CONFLICT`` or ``TUTOR_CONFLICT``
            NotEligibleException: ``NOT_AVAILABLE`` outside declared availability
        """
        with self.transaction():
            session = self._load_pending_proposal(by_user_id, session_id)
            start, end = session.proposed_range()
            self.tutor_repository.lock_tutor(session.tutor_id)

            self.conflict_checker.ensure_student_free(
                session.student_id, start, end, exclude_session_id=session.id
            )
            self.conflict_checker.ensure_tutor_free(
                session.tutor_id, start, end, exclude_session_id=session.id
            )
            self._ensure_tutor_declared(session.tutor_id, start, end)

            session.apply_schedule(start, end, self.clock.now())
            session.clear_proposal(ProposalStatus.ACCEPTED)

        self._record_transition("accept_proposal", session)
        self.notification_service.proposal_accepted(session, by_user_id)
        self.invite_service.emit_session_invites(session, InviteMethod.REQUEST)
        return session

    @BaseService.measure_operation("reject_proposal")
    def reject_proposal(self, by_user_id: str, session_id: str) -> TutoringSession:
        """Counterpart declines; the schedule is left unchanged."""
        with self.transaction():
            session = self._load_pending_proposal(by_user_id, session_id)
            session.clear_proposal(ProposalStatus.REJECTED)

        self.log_operation("reject_proposal", session_id=session.id, by_user_id=by_user_id)
        self.notification_service.proposal_rejected(session, by_user_id)
        return session

    def check_reschedule_conflicts(
        self, user_id: str, session_id: str, new_start: datetime
    ) -> ConflictReport:
        """Preview whether moving the session to ``new_start`` would clash."""
        session = self._load_for_participant(user_id, session_id)
        start = to_operating_naive(new_start)
        end = start + timedelta(minutes=session.duration_min)
        return self.conflict_checker.check(
            session.student_id, session.tutor_id, start, end, exclude_session_id=session.id
        )
