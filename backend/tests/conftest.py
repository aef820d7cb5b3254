# backend/tests/conftest.py
"""
Pytest configuration for the TutorLink backend.

Every test gets its own in-memory SQLite database, so nothing leaks
between tests and the file database configured for local runs is never
touched. Time is pinned with a FixedClock.
"""

import os

# Set testing mode BEFORE any tutorlink imports
os.environ.setdefault("SITE_MODE", "local")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_SCHEMA"] = "false"

from datetime import datetime, timedelta
import json
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tutorlink.core.clock import FixedClock
from tutorlink.core.enums import ApplicationStatus, SessionStatus, VerificationStatus
from tutorlink.database import Base
import tutorlink.models  # noqa: F401  (registers tables)
from tutorlink.models.subject import Subject, TutorSubject
from tutorlink.models.tutor_application import TutorApplication
from tutorlink.models.tutoring_session import TutoringSession
from tutorlink.models.user import User

# Monday 6 January 2025, 08:00 in the operating timezone
MONDAY = datetime(2025, 1, 6)
NOW = MONDAY.replace(hour=8)

WEEKDAYS = ("MON", "TUE", "WED", "THU", "FRI")
ALL_DAYS = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")

SlotSpec = Dict[str, Iterable[Tuple[str, str]]]


def availability_json(slots_by_day: SlotSpec) -> str:
    """Stored availability with the given open slots; other days are off."""
    entries = []
    for day in ALL_DAYS:
        slots = [{"start": start, "end": end} for start, end in slots_by_day.get(day, ())]
        entries.append({"day": day, "off": not slots, "slots": slots})
    return json.dumps(entries)


def weekdays(start: str = "08:00", end: str = "20:00") -> SlotSpec:
    return {day: [(start, end)] for day in WEEKDAYS}


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_user(db) -> Callable[..., User]:
    counter = {"n": 0}

    def _make_user(
        name: Optional[str] = None,
        verified: bool = True,
        tutor: bool = False,
        deactivated: bool = False,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            name=name or f"User {counter['n']}",
            is_tutor_approved=tutor,
            verification_status=(
                VerificationStatus.AUTO_VERIFIED.value
                if verified
                else VerificationStatus.PENDING_REVIEW.value
            ),
            is_deactivated=deactivated,
        )
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def subject(db) -> Subject:
    math = Subject(code="MATH101", title="Calculus I")
    db.add(math)
    db.commit()
    return math


@pytest.fixture
def make_tutor(db, make_user, subject) -> Callable[..., User]:
    def _make_tutor(
        slots: Optional[SlotSpec] = None,
        raw_availability: Optional[str] = None,
        subjects: Optional[List[Subject]] = None,
        application_status: ApplicationStatus = ApplicationStatus.APPROVED,
        **user_kwargs,
    ) -> User:
        user_kwargs.setdefault("tutor", True)
        tutor = make_user(**user_kwargs)
        for taught in subjects if subjects is not None else [subject]:
            db.add(TutorSubject(tutor_id=tutor.id, subject_id=taught.id))
        availability = (
            raw_availability
            if raw_availability is not None
            else availability_json(slots if slots is not None else weekdays())
        )
        db.add(
            TutorApplication(
                user_id=tutor.id,
                status=application_status.value,
                availability=availability,
                created_at=NOW - timedelta(days=30),
            )
        )
        db.commit()
        return tutor

    return _make_tutor


@pytest.fixture
def make_session(db, subject) -> Callable[..., TutoringSession]:
    def _make_session(
        student: User,
        tutor: User,
        start: datetime,
        duration_min: int = 60,
        status: SessionStatus = SessionStatus.PENDING,
        **extra,
    ) -> TutoringSession:
        session = TutoringSession(
            student_id=student.id,
            tutor_id=tutor.id,
            subject_id=extra.pop("subject_id", subject.id),
            scheduled_at=start,
            ends_at=start + timedelta(minutes=duration_min),
            duration_min=duration_min,
            status=status.value,
            calendar_sequence=0,
            **extra,
        )
        db.add(session)
        db.commit()
        return session

    return _make_session


@pytest.fixture
def student(make_user) -> User:
    return make_user(name="Alice Student")


@pytest.fixture
def tutor(make_tutor) -> User:
    return make_tutor(name="Xavier Tutor")
