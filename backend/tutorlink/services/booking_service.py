# backend/tutorlink/services/booking_service.py
"""
Booking Service for TutorLink

A booking is made in two phases:

1. ``plan_booking`` only reads. It finds the eligible tutors that are
   free and declared available for the slot and picks the least loaded
   one, or confirms the one tutor the student asked for. It ends its read
   transaction before returning.
2. ``commit_booking`` opens a new transaction, locks the chosen tutor row,
   re-checks that tutor against the exact slot and inserts the session.
   Another booking that committed in between is reported as
   ``RaceConflictException`` so the client can say the slot was just
   taken.

Retried bookings are not idempotent; a retry may legitimately come back as
a conflict.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session
import ulid

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import SessionStatus
from ..core.exceptions import (
    ConflictException,
    NotEligibleException,
    RaceConflictException,
    ValidationException,
)
from ..core.timezone_utils import same_calendar_day, to_operating_naive
from ..models.tutoring_session import TutoringSession
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from ..repositories.subject_repository import SubjectRepository
from ..repositories.tutor_repository import TutorRepository
from .base import BaseService
from .conflict_checker import ConflictChecker
from .notification_service import NotificationService
from .tutor_selector import NO_TUTOR_MESSAGE, TutorSelector

logger = logging.getLogger(__name__)

TUTOR_NOT_AVAILABLE_MESSAGE = "The selected tutor is not available at that time."


@dataclass(frozen=True)
class BookingRequest:
    student_id: str
    subject_id: str
    scheduled_at: datetime
    ends_at: datetime
    duration_min: int
    tutor_id: Optional[str] = None


@dataclass(frozen=True)
class BookingPlan:
    """The outcome of the read-only phase: who gets the session and when."""

    request: BookingRequest
    tutor_id: str
    candidate_ids: List[str]

    @property
    def scheduled_at(self) -> datetime:
        return self.request.scheduled_at

    @property
    def ends_at(self) -> datetime:
        return self.request.ends_at


class BookingService(BaseService):
    """Service layer for creating sessions."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        tutor_selector: Optional[TutorSelector] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        notification_service: Optional[NotificationService] = None,
        session_repository: Optional[SessionRepository] = None,
        tutor_repository: Optional[TutorRepository] = None,
        subject_repository: Optional[SubjectRepository] = None,
    ):
        super().__init__(db, clock)
        self.session_repository = (
            session_repository or RepositoryFactory.create_session_repository(db)
        )
        self.tutor_repository = tutor_repository or RepositoryFactory.create_tutor_repository(db)
        self.subject_repository = (
            subject_repository or RepositoryFactory.create_subject_repository(db)
        )
        self.tutor_selector = tutor_selector or TutorSelector(
            db,
            clock=self.clock,
            session_repository=self.session_repository,
            tutor_repository=self.tutor_repository,
        )
        self.conflict_checker = conflict_checker or ConflictChecker(
            db, clock=self.clock, repository=self.session_repository
        )
        self.notification_service = notification_service or NotificationService(
            db, clock=self.clock
        )

    def validate_booking_request(
        self,
        student_id: str,
        subject_id: str,
        scheduled_at: datetime,
        duration_min: Optional[int] = None,
        tutor_id: Optional[str] = None,
    ) -> BookingRequest:
        """
        Check the request on its own, before touching anyone's schedule.

        Raises:
            ValidationException: unknown subject, start too soon, duration
                out of bounds or a session crossing midnight
        """
        if self.subject_repository.get_by_id(subject_id) is None:
            raise ValidationException("Subject not found", details={"subject_id": subject_id})

        start = to_operating_naive(scheduled_at)
        duration = duration_min if duration_min is not None else settings.default_duration_minutes

        earliest = self.clock.now() + timedelta(minutes=settings.booking_safety_margin_minutes)
        if start < earliest:
            raise ValidationException(
                f"Sessions must be booked at least {settings.booking_safety_margin_minutes} "
                "minutes in advance"
            )

        low = settings.booking_min_duration_minutes
        high = settings.booking_max_duration_minutes
        if not low <= duration <= high:
            raise ValidationException(
                f"Duration must be between {low} and {high} minutes",
                details={"duration_min": duration},
            )

        end = start + timedelta(minutes=duration)
        if not same_calendar_day(start, end):
            raise ValidationException("Session must start and end on the same day")

        return BookingRequest(
            student_id=student_id,
            subject_id=subject_id,
            scheduled_at=start,
            ends_at=end,
            duration_min=duration,
            tutor_id=tutor_id,
        )

    def plan_booking(self, request: BookingRequest) -> BookingPlan:
        """
        Choose a tutor for the request without writing anything.

        Raises:
            NotEligibleException: ``NO_TUTOR`` when nobody can take the slot,
                ``NOT_AVAILABLE`` when the requested tutor did not declare it
            ConflictException: ``TUTOR_CONFLICT`` when the requested tutor is busy
        """
        try:
            if request.tutor_id:
                return self._plan_for_tutor(request)
            return self._plan_any_tutor(request)
        finally:
            # Planning reads end here; commit_booking takes the lock afresh
            self.db.commit()

    def _plan_for_tutor(self, request: BookingRequest) -> BookingPlan:
        tutor_id = request.tutor_id
        candidates = (
            []
            if tutor_id == request.student_id
            else self.tutor_selector.eligible_candidates(request.subject_id, tutor_id)
        )
        if not candidates:
            raise NotEligibleException(
                NO_TUTOR_MESSAGE,
                code=NotEligibleException.NO_TUTOR,
                details={"tutor_id": tutor_id},
            )
        if not candidates[0].availability.fits(request.scheduled_at, request.ends_at):
            raise NotEligibleException(
                TUTOR_NOT_AVAILABLE_MESSAGE,
                code=NotEligibleException.NOT_AVAILABLE,
                details={"tutor_id": tutor_id},
            )
        self.conflict_checker.ensure_tutor_free(tutor_id, request.scheduled_at, request.ends_at)
        return BookingPlan(request=request, tutor_id=tutor_id, candidate_ids=[tutor_id])

    def _plan_any_tutor(self, request: BookingRequest) -> BookingPlan:
        candidate_ids = [
            tutor_id
            for tutor_id in self.tutor_selector.available_tutor_ids(
                request.subject_id, request.scheduled_at, request.ends_at
            )
            if tutor_id != request.student_id
        ]
        if not candidate_ids:
            raise NotEligibleException(NO_TUTOR_MESSAGE, code=NotEligibleException.NO_TUTOR)

        tutor_id = self.tutor_selector.select(candidate_ids)
        return BookingPlan(request=request, tutor_id=tutor_id, candidate_ids=candidate_ids)

    def commit_booking(self, plan: BookingPlan) -> TutoringSession:
        """
        Insert the planned session after re-validating under a tutor lock.

        Raises:
            RaceConflictException: the tutor was booked after planning
            ConflictException: ``STUDENT_CONFLICT`` if the student was
        """
        request = plan.request
        with self.transaction():
            self.tutor_repository.lock_tutor(plan.tutor_id)

            taken = self.conflict_checker.find_tutor_conflicts(
                plan.tutor_id, request.scheduled_at, request.ends_at
            )
            if taken:
                raise RaceConflictException(
                    details={
                        "tutor_id": plan.tutor_id,
                        "conflicting_session_id": taken[0].id,
                        "scheduled_at": request.scheduled_at.isoformat(),
                    }
                )
            self.conflict_checker.ensure_student_free(
                request.student_id, request.scheduled_at, request.ends_at
            )

            session_id = str(ulid.ULID())
            session = self.session_repository.create(
                id=session_id,
                student_id=request.student_id,
                tutor_id=plan.tutor_id,
                subject_id=request.subject_id,
                scheduled_at=request.scheduled_at,
                ends_at=request.ends_at,
                duration_min=request.duration_min,
                status=SessionStatus.PENDING.value,
                calendar_uid=f"{session_id}@{settings.calendar_uid_domain}",
                calendar_sequence=0,
            )
        return session

    @BaseService.measure_operation("book_session")
    def book_session(
        self,
        student_id: str,
        subject_id: str,
        scheduled_at: datetime,
        duration_min: Optional[int] = None,
        tutor_id: Optional[str] = None,
    ) -> TutoringSession:
        """
        Book a session with the requested tutor, or an automatically chosen one.

        Args:
            student_id: The student making the booking
            subject_id: Subject to be taught
            scheduled_at: Requested start, operating-local or timezone-aware
            duration_min: Length in minutes; the configured default when omitted
            tutor_id: A specific tutor; the least loaded eligible tutor when omitted

        Returns:
            The new PENDING session

        Raises:
            ValidationException: If the request itself is invalid
            ConflictException: ``STUDENT_CONFLICT`` if the student is busy,
                ``TUTOR_CONFLICT`` if the requested tutor is
            NotEligibleException: ``NO_TUTOR`` if no tutor can take it,
                ``NOT_AVAILABLE`` if the requested tutor did not declare the slot
            RaceConflictException: If the slot was taken while booking
        """
        self.log_operation(
            "book_session",
            student_id=student_id,
            subject_id=subject_id,
            scheduled_at=str(scheduled_at),
            duration_min=duration_min,
            tutor_id=tutor_id,
        )

        try:
            # 1. Validate the request
            request = self.validate_booking_request(
                student_id, subject_id, scheduled_at, duration_min, tutor_id
            )

            # 2. Reject early if the student is already busy
            self.conflict_checker.ensure_student_free(
                student_id, request.scheduled_at, request.ends_at
            )

            # 3. Pick or confirm a tutor
            plan = self.plan_booking(request)

            # 4. Re-check and insert atomically
            session = self.commit_booking(plan)
        except RaceConflictException:
            prometheus_metrics.inc_booking_outcome("race_conflict")
            raise
        except ConflictException as e:
            prometheus_metrics.inc_booking_outcome(f"{e.scope}_conflict")
            raise
        except NotEligibleException as e:
            prometheus_metrics.inc_booking_outcome(e.code.lower())
            raise
        except ValidationException:
            prometheus_metrics.inc_booking_outcome("invalid")
            raise

        prometheus_metrics.inc_booking_outcome("booked")
        self.logger.info(
            f"Booked session {session.id} for student {student_id} with tutor {session.tutor_id}"
        )

        # 5. Post-commit side effects
        self.notification_service.session_booked(session)
        return session
