"""Reminder ledger: one row per (session, kind) once that reminder has fired."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class SessionReminder(Base):
    __tablename__ = "session_reminders"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    session_id = Column(
        String(26),
        ForeignKey("tutoring_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    kind = Column(String(8), nullable=False)
    send_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    session = relationship("TutoringSession")

    __table_args__ = (
        UniqueConstraint("session_id", "kind", name="uq_session_reminders_session_kind"),
    )

    def __repr__(self) -> str:
        return f"<SessionReminder {self.session_id}:{self.kind}>"
