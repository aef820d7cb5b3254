# backend/tutorlink/models/user.py
"""
User model for the TutorLink session engine.

Identity and authentication live outside this service; this table holds
only the flags that decide whether a user may book or teach.
"""

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import VerificationStatus
from ..database import Base


class User(Base):
    """
    A student or tutor.

    Attributes:
        is_tutor_approved: Set once an admin approves a tutor application
        verification_status: ``AUTO_VERIFIED`` means the account is verified
        is_deactivated: Deactivated accounts cannot book or be matched
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    is_tutor_approved = Column(Boolean, nullable=False, default=False)
    verification_status = Column(
        String(20), nullable=False, default=VerificationStatus.UNVERIFIED.value
    )
    is_deactivated = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())

    subjects = relationship(
        "Subject", secondary="tutor_subjects", back_populates="tutors", viewonly=True
    )
    applications = relationship(
        "TutorApplication", back_populates="user", order_by="TutorApplication.created_at.desc()"
    )

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.AUTO_VERIFIED.value

    @property
    def display_name(self) -> str:
        return self.name or self.email

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email}>"
