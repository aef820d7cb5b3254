"""
Database models for the TutorLink session engine.

Importing this package registers every table on ``Base.metadata``.
"""

from .notification import Notification
from .session_reminder import SessionReminder
from .subject import Subject, TutorSubject
from .tutor_application import TutorApplication
from .tutoring_session import TutoringSession
from .user import User

__all__ = [
    "Notification",
    "SessionReminder",
    "Subject",
    "TutorApplication",
    "TutorSubject",
    "TutoringSession",
    "User",
]
