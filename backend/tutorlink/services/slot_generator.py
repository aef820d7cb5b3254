# backend/tutorlink/services/slot_generator.py
"""
Slot Generator Service for TutorLink

Enumerates bookable start times for a subject. For every eligible tutor,
every day in the window and every declared slot of that day, start times
are stepped from the slot's start; a candidate survives when it fits
inside that one slot, starts no earlier than now, and does not overlap
one of the tutor's active sessions. Candidates with identical
``(start, end)`` from different tutors are merged.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.exceptions import NotFoundException
from ..models.tutoring_session import TutoringSession
from ..repositories.factory import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from ..repositories.subject_repository import SubjectRepository
from .availability import DeclaredAvailability, iter_window_days
from .base import BaseService
from .conflict_checker import first_overlap
from .tutor_selector import TutorSelector

logger = logging.getLogger(__name__)


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


@dataclass
class AvailableSlot:
    start: datetime
    end: datetime
    tutor_ids: List[str] = field(default_factory=list)

    @property
    def tutor_count(self) -> int:
        return len(self.tutor_ids)


def iter_candidate_ranges(
    availability: DeclaredAvailability,
    window_start: datetime,
    window_days: int,
    duration_min: int,
    step_min: int,
) -> Iterator[Tuple[datetime, datetime]]:
    """Every ``[start, start + duration)`` stepped within a single declared slot."""
    duration = timedelta(minutes=duration_min)
    for day in iter_window_days(window_start, window_days):
        midnight = datetime.combine(day, datetime.min.time())
        for slot in availability.iter_open_ranges(day):
            minute = slot.start_minutes
            while minute + duration_min <= slot.end_minutes:
                start = midnight + timedelta(minutes=minute)
                yield start, start + duration
                minute += step_min


class SlotGenerator(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        tutor_selector: Optional[TutorSelector] = None,
        session_repository: Optional[SessionRepository] = None,
        subject_repository: Optional[SubjectRepository] = None,
    ):
        super().__init__(db, clock)
        self.tutor_selector = tutor_selector or TutorSelector(db, clock=self.clock)
        self.session_repository = (
            session_repository or RepositoryFactory.create_session_repository(db)
        )
        self.subject_repository = (
            subject_repository or RepositoryFactory.create_subject_repository(db)
        )

    def normalize_parameters(
        self,
        duration_min: Optional[int],
        window_days: Optional[int],
        step_min: Optional[int],
    ) -> Tuple[int, int, int]:
        """Apply defaults and clamp each parameter into its configured range."""
        duration = clamp(
            duration_min if duration_min is not None else settings.default_duration_minutes,
            settings.slot_min_duration_minutes,
            settings.slot_max_duration_minutes,
        )
        days = clamp(
            window_days if window_days is not None else settings.slot_default_window_days,
            settings.slot_min_window_days,
            settings.slot_max_window_days,
        )
        step = clamp(
            step_min if step_min is not None else settings.slot_default_step_minutes,
            settings.slot_min_step_minutes,
            settings.slot_max_step_minutes,
        )
        return duration, days, step

    @BaseService.measure_operation("compute_slots")
    def compute_slots(
        self,
        subject_id: str,
        duration_min: Optional[int],
        window_start: datetime,
        window_days: Optional[int],
        step_min: Optional[int],
    ) -> List[AvailableSlot]:
        """
        Merged, sorted and capped available slots for the subject.

        Args:
            subject_id: Subject to find tutors for
            duration_min: Requested length, clamped to the configured bounds
            window_start: Day 0 of the search window; earlier starts are dropped
            window_days: Number of days searched, clamped
            step_min: Distance between consecutive candidate starts, clamped
        """
        duration, days, step = self.normalize_parameters(duration_min, window_days, step_min)
        earliest = max(self.clock.now(), window_start)
        window_begin = datetime.combine(window_start.date(), datetime.min.time())
        window_end = window_begin + timedelta(days=days)

        candidates = self.tutor_selector.eligible_candidates(subject_id)
        if not candidates:
            return []

        busy: Dict[str, List[TutoringSession]] = (
            self.session_repository.get_active_sessions_for_tutors(
                [c.tutor_id for c in candidates], window_begin, window_end
            )
        )

        merged: Dict[Tuple[datetime, datetime], AvailableSlot] = {}
        for candidate in candidates:
            tutor_sessions = busy.get(candidate.tutor_id, [])
            for start, end in iter_candidate_ranges(
                candidate.availability, window_start, days, duration, step
            ):
                if start < earliest:
                    continue
                if first_overlap(tutor_sessions, start, end) is not None:
                    continue
                slot = merged.setdefault((start, end), AvailableSlot(start=start, end=end))
                if candidate.tutor_id not in slot.tutor_ids:
                    slot.tutor_ids.append(candidate.tutor_id)

        ordered = sorted(merged.values(), key=lambda s: (s.start, s.end))
        return ordered[: settings.slot_result_cap]

    def compute_available_slots(
        self,
        subject_id: str,
        duration_min: Optional[int] = None,
        window_days: Optional[int] = None,
        step_min: Optional[int] = None,
    ) -> List[AvailableSlot]:
        """
        Slots from the start of today for ``window_days`` days.

        Raises:
            NotFoundException: if the subject does not exist
        """
        if self.subject_repository.get_by_id(subject_id) is None:
            raise NotFoundException("Subject not found")
        return self.compute_slots(
            subject_id,
            duration_min,
            self.clock.today(),
            window_days,
            step_min,
        )
