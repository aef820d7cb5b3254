# backend/tutorlink/models/tutoring_session.py
"""
Tutoring session model.

A session is a booked time range between one student and one tutor for a
subject. It carries its own schedule, its lifecycle status and at most one
outstanding reschedule proposal. Sessions are never deleted; cancelled and
completed rows stay as history.

Times are naive wall-clock values in the operating timezone and the range
``[scheduled_at, ends_at)`` is half-open.
"""

from datetime import datetime, timedelta
import logging
from typing import Any, Optional

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import ProposalStatus, SessionStatus
from ..database import Base

logger = logging.getLogger(__name__)


class TutoringSession(Base):
    __tablename__ = "tutoring_sessions"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    student_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    tutor_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    subject_id = Column(String(26), ForeignKey("subjects.id"), nullable=False)

    scheduled_at = Column(DateTime, nullable=False, index=True)
    ends_at = Column(DateTime, nullable=False)
    duration_min = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=SessionStatus.PENDING.value, index=True)

    # Reschedule proposal
    proposed_at = Column(DateTime, nullable=True)
    proposed_end_at = Column(DateTime, nullable=True)
    proposed_note = Column(Text, nullable=True)
    proposal_status = Column(String(20), nullable=True)
    proposed_by_user_id = Column(String(26), ForeignKey("users.id"), nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())
    accepted_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    rescheduled_at = Column(DateTime, nullable=True)

    # Cancellation tracking
    cancelled_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    cancel_reason = Column(Text, nullable=True)

    # Calendar invite identity; SEQUENCE grows each time the event changes
    calendar_uid = Column(String(255), nullable=True)
    calendar_sequence = Column(Integer, nullable=False, default=0)

    student = relationship("User", foreign_keys=[student_id])
    tutor = relationship("User", foreign_keys=[tutor_id])
    subject = relationship("Subject")

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'ACCEPTED', 'COMPLETED', 'CANCELLED')",
            name="ck_tutoring_sessions_status",
        ),
        CheckConstraint(
            "proposal_status IS NULL OR proposal_status IN ('PENDING', 'ACCEPTED', 'REJECTED')",
            name="ck_tutoring_sessions_proposal_status",
        ),
        CheckConstraint("duration_min > 0", name="check_duration_positive"),
        CheckConstraint("scheduled_at < ends_at", name="check_time_order"),
        Index("ix_sessions_tutor_status_start", "tutor_id", "status", "scheduled_at"),
        Index("ix_sessions_student_status_start", "student_id", "status", "scheduled_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<TutoringSession {self.id}: student={self.student_id}, tutor={self.tutor_id}, "
            f"{self.scheduled_at}-{self.ends_at}, status={self.status}>"
        )

    @property
    def is_active(self) -> bool:
        return self.status in (SessionStatus.PENDING.value, SessionStatus.ACCEPTED.value)

    @property
    def has_pending_proposal(self) -> bool:
        return self.proposal_status == ProposalStatus.PENDING.value and self.proposed_at is not None

    def involves(self, user_id: str) -> bool:
        return user_id in (self.student_id, self.tutor_id)

    def counterpart_of(self, user_id: str) -> str:
        return self.tutor_id if user_id == self.student_id else self.student_id

    def proposed_range(self) -> tuple[datetime, datetime]:
        """The proposal's time range, defaulting the end to start plus duration."""
        start = self.proposed_at
        end = self.proposed_end_at or start + timedelta(minutes=self.duration_min)
        return start, end

    def accept(self, now: datetime) -> None:
        self.status = SessionStatus.ACCEPTED.value
        self.accepted_at = now
        logger.info(f"Session {self.id} accepted by tutor {self.tutor_id}")

    def complete(self, now: datetime) -> None:
        self.status = SessionStatus.COMPLETED.value
        self.completed_at = now
        logger.info(f"Session {self.id} marked as completed")

    def cancel(
        self, cancelled_by_user_id: str, now: datetime, reason: Optional[str] = None
    ) -> None:
        self.status = SessionStatus.CANCELLED.value
        self.cancelled_at = now
        self.cancelled_by_id = cancelled_by_user_id
        self.cancel_reason = reason
        logger.info(f"Session {self.id} cancelled by user {cancelled_by_user_id}")

    def set_proposal(
        self,
        proposed_by_user_id: str,
        start: datetime,
        end: Optional[datetime],
        note: Optional[str],
    ) -> None:
        self.proposed_at = start
        self.proposed_end_at = end
        self.proposed_note = note
        self.proposed_by_user_id = proposed_by_user_id
        self.proposal_status = ProposalStatus.PENDING.value

    def clear_proposal(self, outcome: ProposalStatus) -> None:
        self.proposed_at = None
        self.proposed_end_at = None
        self.proposed_note = None
        self.proposed_by_user_id = None
        self.proposal_status = outcome.value

    def apply_schedule(self, start: datetime, end: datetime, now: datetime) -> None:
        """Move the session to a new range and re-open it for tutor acceptance."""
        self.scheduled_at = start
        self.ends_at = end
        self.duration_min = int((end - start).total_seconds() // 60)
        self.status = SessionStatus.PENDING.value
        self.rescheduled_at = now
        self.calendar_sequence = (self.calendar_sequence or 0) + 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging and task payloads."""
        return {
            "id": self.id,
            "student_id": self.student_id,
            "tutor_id": self.tutor_id,
            "subject_id": self.subject_id,
            "scheduled_at": self.scheduled_at.isoformat() if self.scheduled_at else None,
            "ends_at": self.ends_at.isoformat() if self.ends_at else None,
            "duration_min": self.duration_min,
            "status": self.status,
            "proposal_status": self.proposal_status,
            "proposed_at": self.proposed_at.isoformat() if self.proposed_at else None,
            "cancel_reason": self.cancel_reason,
        }
