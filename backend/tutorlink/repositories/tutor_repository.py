# backend/tutorlink/repositories/tutor_repository.py
"""
Tutor Repository for TutorLink

Answers "who may teach this subject" and "what did this tutor declare as
available". A tutor is eligible when approved, verified, not deactivated
and linked to the subject.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ApplicationStatus, VerificationStatus
from ..core.exceptions import RepositoryException
from ..models.subject import TutorSubject
from ..models.tutor_application import TutorApplication
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TutorRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_eligible_tutors_for_subject(
        self, subject_id: str, tutor_id: Optional[str] = None
    ) -> List[User]:
        """
        Approved, verified, active tutors that teach the subject.

        With ``tutor_id`` the result is that tutor alone, or empty when they
        are not eligible.
        """
        query = (
            self.db.query(User)
            .join(TutorSubject, TutorSubject.tutor_id == User.id)
            .filter(
                TutorSubject.subject_id == subject_id,
                User.is_tutor_approved.is_(True),
                User.verification_status == VerificationStatus.AUTO_VERIFIED.value,
                User.is_deactivated.is_(False),
            )
        )
        if tutor_id is not None:
            query = query.filter(User.id == tutor_id)
        try:
            return query.order_by(User.id).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting tutors for subject {subject_id}: {str(e)}")
            raise RepositoryException(f"Failed to get eligible tutors: {str(e)}")

    def get_latest_application(self, tutor_id: str) -> Optional[TutorApplication]:
        """The most recent application regardless of review status."""
        try:
            return (
                self.db.query(TutorApplication)
                .filter(TutorApplication.user_id == tutor_id)
                .order_by(TutorApplication.created_at.desc(), TutorApplication.id.desc())
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting application for tutor {tutor_id}: {str(e)}")
            raise RepositoryException(f"Failed to get tutor application: {str(e)}")

    def get_latest_approved_application(self, tutor_id: str) -> Optional[TutorApplication]:
        """The most recent APPROVED application, which carries declared availability."""
        try:
            return (
                self.db.query(TutorApplication)
                .filter(
                    TutorApplication.user_id == tutor_id,
                    TutorApplication.status == ApplicationStatus.APPROVED.value,
                )
                .order_by(TutorApplication.created_at.desc(), TutorApplication.id.desc())
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting application for tutor {tutor_id}: {str(e)}")
            raise RepositoryException(f"Failed to get tutor application: {str(e)}")

    def get_availability_raw(self, tutor_id: str) -> Optional[str]:
        application = self.get_latest_approved_application(tutor_id)
        return application.availability if application else None

    def lock_tutor(self, tutor_id: str) -> Optional[User]:
        """Row-lock the tutor so concurrent commits for the same tutor serialize."""
        return self.get_for_update(tutor_id)
