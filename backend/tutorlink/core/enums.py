# backend/tutorlink/core/enums.py
"""
Core enums for the TutorLink session engine.

Values are persisted as plain strings, so members subclass ``str``.
"""

from enum import Enum


class SessionStatus(str, Enum):
    """Tutoring session lifecycle statuses."""

    PENDING = "PENDING"  # Booked, awaiting tutor acceptance
    ACCEPTED = "ACCEPTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @classmethod
    def active(cls) -> tuple["SessionStatus", ...]:
        """Statuses that block the time range for both parties."""
        return (cls.PENDING, cls.ACCEPTED)

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.CANCELLED)


class ProposalStatus(str, Enum):
    """State of a reschedule proposal attached to a session."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class ApplicationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class VerificationStatus(str, Enum):
    UNVERIFIED = "UNVERIFIED"
    PENDING_REVIEW = "PENDING_REVIEW"
    AUTO_VERIFIED = "AUTO_VERIFIED"
    REJECTED = "REJECTED"


class DayKey(str, Enum):
    """Weekday keys used by declared availability, in ``date.weekday()`` order."""

    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"
    SUN = "SUN"

    @classmethod
    def ordered(cls) -> tuple["DayKey", ...]:
        return (cls.MON, cls.TUE, cls.WED, cls.THU, cls.FRI, cls.SAT, cls.SUN)

    @classmethod
    def for_weekday(cls, weekday: int) -> "DayKey":
        return cls.ordered()[weekday]


class Viewer(str, Enum):
    """Which dashboard a notification links into."""

    STUDENT = "STUDENT"
    TUTOR = "TUTOR"


class NotificationType(str, Enum):
    SESSION_BOOKED = "SESSION_BOOKED"
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    TIME_PROPOSAL = "TIME_PROPOSAL"
    TIME_PROPOSAL_ACCEPTED = "TIME_PROPOSAL_ACCEPTED"
    TIME_PROPOSAL_REJECTED = "TIME_PROPOSAL_REJECTED"
    SESSION_CANCELLED = "SESSION_CANCELLED"
    SESSION_COMPLETED = "SESSION_COMPLETED"
    SESSION_REMINDER = "SESSION_REMINDER"


class ReminderKind(str, Enum):
    """Pre-session reminders; the value is the lead time in minutes."""

    H24 = "H24"
    H1 = "H1"
    M5 = "M5"

    @property
    def minutes_before(self) -> int:
        return {"H24": 24 * 60, "H1": 60, "M5": 5}[self.value]

    @property
    def label(self) -> str:
        return {"H24": "in 24 hours", "H1": "in 1 hour", "M5": "in 5 minutes"}[self.value]


class InviteMethod(str, Enum):
    REQUEST = "REQUEST"
    CANCEL = "CANCEL"
