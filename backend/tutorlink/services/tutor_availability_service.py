# backend/tutorlink/services/tutor_availability_service.py
"""
Tutor Availability Service for TutorLink

Reads and replaces a tutor's declared weekly availability. The schedule is
stored on the tutor's latest application; matching reads it from the
latest APPROVED one.
"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.exceptions import NotFoundException, ValidationException
from ..repositories.factory import RepositoryFactory
from ..repositories.tutor_repository import TutorRepository
from .availability import DeclaredAvailability, parse_availability
from .base import BaseService

logger = logging.getLogger(__name__)


class TutorAvailabilityService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        tutor_repository: Optional[TutorRepository] = None,
    ):
        super().__init__(db, clock)
        self.tutor_repository = tutor_repository or RepositoryFactory.create_tutor_repository(db)

    def get_tutor_availability(self, tutor_id: str) -> Optional[DeclaredAvailability]:
        """
        The availability matching would use, or None when nothing usable is
        declared.
        """
        return parse_availability(self.tutor_repository.get_availability_raw(tutor_id))

    @BaseService.measure_operation("save_tutor_availability")
    def save_tutor_availability(self, tutor_id: str, raw: Any) -> DeclaredAvailability:
        """
        Replace the declared availability on the tutor's latest application.

        The payload is normalized before it is stored: all seven days, MON
        first, invalid slots dropped.

        Raises:
            NotFoundException: the user has no tutor application
            ValidationException: nothing in the payload is a usable schedule
        """
        availability = parse_availability(raw)
        if availability is None:
            raise ValidationException("Availability must be a list of day entries")

        with self.transaction():
            application = self.tutor_repository.get_latest_application(tutor_id)
            if application is None:
                raise NotFoundException("Tutor application not found")
            application.availability = availability.to_json()
            application.updated_at = self.clock.now()

        self.log_operation("save_tutor_availability", tutor_id=tutor_id)
        return availability
