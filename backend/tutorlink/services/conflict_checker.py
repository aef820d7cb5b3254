# backend/tutorlink/services/conflict_checker.py
"""
Conflict Checker Service for TutorLink

Detects double-booking. A party is busy over ``[start, end)`` when one of
their active (PENDING or ACCEPTED) sessions overlaps it under the
half-open test ``a_start < b_end and a_end > b_start``: back-to-back
sessions do not conflict.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.exceptions import ConflictException
from ..models.tutoring_session import TutoringSession
from ..repositories.factory import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from .base import BaseService

logger = logging.getLogger(__name__)

STUDENT_CONFLICT_MESSAGE = "You already have a session booked during this time."
TUTOR_CONFLICT_MESSAGE = "The tutor already has a session booked during this time."


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap."""
    return a_start < b_end and a_end > b_start


def first_overlap(
    sessions: Iterable[TutoringSession], start: datetime, end: datetime
) -> Optional[TutoringSession]:
    """First active session in ``sessions`` overlapping ``[start, end)``."""
    for session in sessions:
        if session.is_active and overlaps(session.scheduled_at, session.ends_at, start, end):
            return session
    return None


@dataclass(frozen=True)
class ConflictReport:
    student_conflict: bool
    tutor_conflict: bool

    @property
    def has_conflict(self) -> bool:
        return self.student_conflict or self.tutor_conflict


class ConflictChecker(BaseService):
    """Service for detecting overlapping active sessions on either side."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        repository: Optional[SessionRepository] = None,
    ):
        super().__init__(db, clock)
        self.repository = repository or RepositoryFactory.create_session_repository(db)

    def find_tutor_conflicts(
        self,
        tutor_id: str,
        start: datetime,
        end: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> List[TutoringSession]:
        return self.repository.get_tutor_conflicts(tutor_id, start, end, exclude_session_id)

    def find_student_conflicts(
        self,
        student_id: str,
        start: datetime,
        end: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> List[TutoringSession]:
        return self.repository.get_student_conflicts(student_id, start, end, exclude_session_id)

    def ensure_student_free(
        self,
        student_id: str,
        start: datetime,
        end: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> None:
        """
        Raises:
            ConflictException: ``STUDENT_CONFLICT`` when the student is busy
        """
        conflicts = self.find_student_conflicts(student_id, start, end, exclude_session_id)
        if conflicts:
            raise ConflictException(
                STUDENT_CONFLICT_MESSAGE,
                code=ConflictException.STUDENT,
                details={"conflicting_session_id": conflicts[0].id},
            )

    def ensure_tutor_free(
        self,
        tutor_id: str,
        start: datetime,
        end: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> None:
        """
        Raises:
            ConflictException: ``TUTOR_CONFLICT`` when the tutor is busy
        """
        conflicts = self.find_tutor_conflicts(tutor_id, start, end, exclude_session_id)
        if conflicts:
            raise ConflictException(
                TUTOR_CONFLICT_MESSAGE,
                code=ConflictException.TUTOR,
                details={"conflicting_session_id": conflicts[0].id},
            )

    @BaseService.measure_operation("check_conflicts")
    def check(
        self,
        student_id: str,
        tutor_id: str,
        start: datetime,
        end: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> ConflictReport:
        """Report both sides without raising."""
        return ConflictReport(
            student_conflict=bool(
                self.find_student_conflicts(student_id, start, end, exclude_session_id)
            ),
            tutor_conflict=bool(
                self.find_tutor_conflicts(tutor_id, start, end, exclude_session_id)
            ),
        )
