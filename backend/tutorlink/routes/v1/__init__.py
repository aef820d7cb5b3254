# backend/tutorlink/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import sessions, subjects, tutor_availability, tutor_sessions

__all__ = [
    "sessions",
    "subjects",
    "tutor_availability",
    "tutor_sessions",
]
