# backend/tutorlink/services/tutor_selector.py
"""
Tutor Selector Service for TutorLink

Chooses which tutor gets a new session. Candidates are tutors that teach
the subject, pass the eligibility flags, declared availability covering
the slot and have no conflicting active session. Among them the tutor
with the fewest active sessions starting in the next load window wins;
ties are broken uniformly at random.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
import random
from typing import Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.exceptions import NotEligibleException
from ..repositories.factory import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from ..repositories.tutor_repository import TutorRepository
from .availability import DeclaredAvailability, parse_availability
from .base import BaseService
from .conflict_checker import first_overlap

logger = logging.getLogger(__name__)

NO_TUTOR_MESSAGE = "No tutor is available for this subject at the selected time."


@dataclass(frozen=True)
class TutorCandidate:
    """An eligible tutor together with their parsed declared availability."""

    tutor_id: str
    availability: DeclaredAvailability


def pick_least_loaded(loads: Mapping[str, int], rng: random.Random) -> str:
    """
    Pick a tutor with minimal load, uniformly among ties.

    Raises:
        NotEligibleException: if ``loads`` is empty
    """
    if not loads:
        raise NotEligibleException(NO_TUTOR_MESSAGE, code=NotEligibleException.NO_TUTOR)
    lowest = min(loads.values())
    tied = sorted(tutor_id for tutor_id, load in loads.items() if load == lowest)
    return rng.choice(tied)


class TutorSelector(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        session_repository: Optional[SessionRepository] = None,
        tutor_repository: Optional[TutorRepository] = None,
    ):
        super().__init__(db, clock)
        self.rng = rng or random.Random()
        self.session_repository = (
            session_repository or RepositoryFactory.create_session_repository(db)
        )
        self.tutor_repository = tutor_repository or RepositoryFactory.create_tutor_repository(db)

    def eligible_candidates(
        self, subject_id: str, tutor_id: Optional[str] = None
    ) -> List[TutorCandidate]:
        """Eligible tutors for the subject that have parseable declared availability."""
        candidates: List[TutorCandidate] = []
        for tutor in self.tutor_repository.get_eligible_tutors_for_subject(subject_id, tutor_id):
            raw = self.tutor_repository.get_availability_raw(tutor.id)
            availability = parse_availability(raw)
            if availability is None:
                self.logger.debug(f"Tutor {tutor.id} has no usable declared availability")
                continue
            candidates.append(TutorCandidate(tutor_id=tutor.id, availability=availability))
        return candidates

    def available_tutor_ids(self, subject_id: str, start: datetime, end: datetime) -> List[str]:
        """Eligible tutors whose availability covers ``[start, end)`` and who are free then."""
        candidates = [
            c for c in self.eligible_candidates(subject_id) if c.availability.fits(start, end)
        ]
        busy = self.session_repository.get_active_sessions_for_tutors(
            [c.tutor_id for c in candidates], start, end
        )
        return [
            c.tutor_id
            for c in candidates
            if first_overlap(busy.get(c.tutor_id, ()), start, end) is None
        ]

    def compute_loads(self, tutor_ids: Sequence[str]) -> Dict[str, int]:
        """Active sessions per tutor starting within the load window from now."""
        now = self.clock.now()
        horizon = now + timedelta(days=settings.load_window_days)
        return self.session_repository.count_active_starting_between(tutor_ids, now, horizon)

    @BaseService.measure_operation("select_tutor")
    def select(self, tutor_ids: Sequence[str]) -> str:
        """
        Choose the least-loaded tutor among ``tutor_ids``.

        Raises:
            NotEligibleException: ``NO_TUTOR`` when there are no candidates
        """
        if not tutor_ids:
            raise NotEligibleException(NO_TUTOR_MESSAGE, code=NotEligibleException.NO_TUTOR)
        loads = self.compute_loads(tutor_ids)
        chosen = pick_least_loaded(loads, self.rng)
        self.logger.debug(f"Selected tutor {chosen} from loads {loads}")
        return chosen
