# backend/tutorlink/models/tutor_application.py
"""
Tutor application model.

The latest APPROVED application of a tutor carries the tutor's declared
weekly availability as a JSON document in ``availability``.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import ApplicationStatus
from ..database import Base


class TutorApplication(Base):
    __tablename__ = "tutor_applications"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default=ApplicationStatus.PENDING.value)
    availability = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    user = relationship("User", back_populates="applications")

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED')",
            name="ck_tutor_applications_status",
        ),
        Index("ix_tutor_applications_user_created", "user_id", "created_at"),
    )

    @property
    def is_approved(self) -> bool:
        return self.status == ApplicationStatus.APPROVED.value

    def __repr__(self) -> str:
        return f"<TutorApplication {self.id}: user={self.user_id}, status={self.status}>"
