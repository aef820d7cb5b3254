# backend/tutorlink/repositories/__init__.py
"""
Repository layer for TutorLink.

Data access is separated from business logic; services receive
repositories from RepositoryFactory.
"""

from .base_repository import BaseRepository
from .factory import RepositoryFactory
from .notification_repository import NotificationRepository, SessionReminderRepository
from .session_repository import SessionRepository
from .subject_repository import SubjectRepository
from .tutor_repository import TutorRepository

__all__ = [
    "BaseRepository",
    "NotificationRepository",
    "RepositoryFactory",
    "SessionReminderRepository",
    "SessionRepository",
    "SubjectRepository",
    "TutorRepository",
]
