# backend/tutorlink/models/subject.py
"""Subjects and the tutor-subject link table."""

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class Subject(Base):
    """A teachable subject. Read-only to the session engine."""

    __tablename__ = "subjects"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    code = Column(String(32), unique=True, nullable=False)
    title = Column(String(255), nullable=False)

    tutors = relationship(
        "User", secondary="tutor_subjects", back_populates="subjects", viewonly=True
    )

    def __repr__(self) -> str:
        return f"<Subject {self.code}: {self.title}>"


class TutorSubject(Base):
    __tablename__ = "tutor_subjects"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tutor_id = Column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subject_id = Column(
        String(26), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )

    __table_args__ = (UniqueConstraint("tutor_id", "subject_id", name="uq_tutor_subjects_pair"),)
