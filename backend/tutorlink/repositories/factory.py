# backend/tutorlink/repositories/factory.py
"""
Repository Factory for TutorLink

Provides centralized creation of repository instances so services can be
handed explicit repositories in tests and default ones otherwise.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .notification_repository import NotificationRepository, SessionReminderRepository
    from .session_repository import SessionRepository
    from .subject_repository import SubjectRepository
    from .tutor_repository import TutorRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_session_repository(db: Session) -> "SessionRepository":
        from .session_repository import SessionRepository

        return SessionRepository(db)

    @staticmethod
    def create_tutor_repository(db: Session) -> "TutorRepository":
        from .tutor_repository import TutorRepository

        return TutorRepository(db)

    @staticmethod
    def create_subject_repository(db: Session) -> "SubjectRepository":
        from .subject_repository import SubjectRepository

        return SubjectRepository(db)

    @staticmethod
    def create_notification_repository(db: Session) -> "NotificationRepository":
        from .notification_repository import NotificationRepository

        return NotificationRepository(db)

    @staticmethod
    def create_session_reminder_repository(db: Session) -> "SessionReminderRepository":
        from .notification_repository import SessionReminderRepository

        return SessionReminderRepository(db)
