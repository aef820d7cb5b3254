# backend/tests/integration/services/test_booking_service_db.py
"""
Booking flow against a real database: validation, conflict detection,
automatic tutor selection and the plan/commit race window.
"""

from datetime import datetime, timedelta, timezone
import random

import pytest

from tutorlink.core.config import settings
from tutorlink.core.enums import NotificationType, SessionStatus
from tutorlink.core.exceptions import (
    ConflictException,
    NotEligibleException,
    RaceConflictException,
    ValidationException,
)
from tutorlink.models.notification import Notification
from tutorlink.models.subject import Subject
from tutorlink.models.tutoring_session import TutoringSession
from tutorlink.services.booking_service import BookingPlan, BookingService
from tutorlink.services.tutor_selector import TutorSelector

MONDAY = datetime(2025, 1, 6)
TUESDAY = MONDAY + timedelta(days=1)


def _at(hour, minute=0, day=MONDAY):
    return day.replace(hour=hour, minute=minute)


@pytest.fixture
def booking_service(db, clock):
    return BookingService(db, clock=clock)


def _session_count(db):
    return db.query(TutoringSession).count()


class TestBookSession:
    def test_books_pending_session_with_eligible_tutor(
        self, db, booking_service, student, tutor, subject
    ):
        session = booking_service.book_session(student.id, subject.id, _at(10), 60)

        assert session.status == SessionStatus.PENDING.value
        assert session.tutor_id == tutor.id
        assert session.student_id == student.id
        assert session.scheduled_at == _at(10)
        assert session.ends_at == _at(11)
        assert session.duration_min == 60
        assert session.calendar_uid == f"{session.id}@{settings.calendar_uid_domain}"
        assert session.calendar_sequence == 0
        assert db.get(TutoringSession, session.id) is not None

    def test_tutor_is_notified(self, db, booking_service, student, tutor, subject):
        session = booking_service.book_session(student.id, subject.id, _at(10), 60)

        notifications = db.query(Notification).filter_by(user_id=tutor.id).all()
        assert [n.type for n in notifications] == [NotificationType.SESSION_BOOKED.value]
        assert notifications[0].data["session_id"] == session.id
        assert notifications[0].data["href"] == (
            f"/dashboard/tutor/sessions?focus={session.id}"
        )

    def test_duration_defaults(self, booking_service, student, tutor, subject):
        session = booking_service.book_session(student.id, subject.id, _at(10))

        assert session.duration_min == settings.default_duration_minutes
        assert session.ends_at == _at(11)

    def test_aware_start_is_converted(self, booking_service, student, tutor, subject):
        start = datetime(2025, 1, 6, 2, 0, tzinfo=timezone.utc)

        session = booking_service.book_session(student.id, subject.id, start, 30)

        assert session.scheduled_at == _at(10)
        assert session.ends_at == _at(10, 30)

    def test_back_to_back_sessions_are_allowed(
        self, make_user, booking_service, student, tutor, subject, make_session
    ):
        make_session(make_user(), tutor, _at(9), 60, status=SessionStatus.ACCEPTED)

        session = booking_service.book_session(student.id, subject.id, _at(10), 60)

        assert session.tutor_id == tutor.id


class TestBookingValidation:
    @pytest.mark.parametrize(
        "start,duration",
        [
            (datetime(2025, 1, 6, 8, 3), 60),  # inside the safety margin
            (datetime(2025, 1, 6, 7, 0), 60),  # in the past
            (datetime(2025, 1, 6, 10, 0), 10),
            (datetime(2025, 1, 6, 10, 0), 181),
            (datetime(2025, 1, 6, 23, 30), 60),  # crosses midnight
        ],
    )
    def test_invalid_requests(self, db, booking_service, student, tutor, subject, start, duration):
        with pytest.raises(ValidationException) as exc_info:
            booking_service.book_session(student.id, subject.id, start, duration)

        assert exc_info.value.code == "VALIDATION"
        assert _session_count(db) == 0

    def test_boundaries_are_accepted(self, booking_service, student, tutor, subject):
        assert booking_service.book_session(student.id, subject.id, _at(8, 5), 15)
        assert booking_service.book_session(student.id, subject.id, _at(9), 180)

    def test_unknown_subject(self, booking_service, student, tutor):
        with pytest.raises(ValidationException) as exc_info:
            booking_service.book_session(student.id, "01JGNOSUCHSUBJECT000000000", _at(10))

        assert exc_info.value.message == "Subject not found"


class TestBookingConflicts:
    def test_student_already_busy(
        self, db, make_tutor, booking_service, student, subject, make_session
    ):
        other_tutor = make_tutor()
        make_session(student, other_tutor, _at(10, 30), 60)

        with pytest.raises(ConflictException) as exc_info:
            booking_service.book_session(student.id, subject.id, _at(10), 60)

        assert exc_info.value.code == ConflictException.STUDENT
        assert _session_count(db) == 1

    def test_no_tutor_available(self, db, booking_service, student, tutor, subject):
        saturday = MONDAY + timedelta(days=5)

        with pytest.raises(NotEligibleException) as exc_info:
            booking_service.book_session(student.id, subject.id, _at(10, day=saturday), 60)

        assert exc_info.value.code == NotEligibleException.NO_TUTOR
        assert _session_count(db) == 0

    def test_requested_tutor_busy(
        self, db, make_user, booking_service, student, tutor, subject
    ):
        """studentA holds TutorX Tue 10:00-11:00; studentB cannot get X at 10:30-11:30."""
        first_student = make_user()
        booking_service.book_session(
            first_student.id, subject.id, _at(10, day=TUESDAY), 60, tutor_id=tutor.id
        )

        with pytest.raises(ConflictException) as exc_info:
            booking_service.book_session(
                student.id, subject.id, _at(10, 30, day=TUESDAY), 60, tutor_id=tutor.id
            )

        assert exc_info.value.code == ConflictException.TUTOR
        assert exc_info.value.scope == "tutor"
        assert _session_count(db) == 1

    def test_only_tutor_busy_without_request(
        self, db, make_user, booking_service, student, tutor, subject, make_session
    ):
        make_session(make_user(), tutor, _at(10, day=TUESDAY), 60)

        with pytest.raises(NotEligibleException) as exc_info:
            booking_service.book_session(student.id, subject.id, _at(10, 30, day=TUESDAY), 60)

        assert exc_info.value.code == NotEligibleException.NO_TUTOR

    def test_student_is_never_their_own_tutor(self, db, booking_service, tutor, subject):
        with pytest.raises(NotEligibleException):
            booking_service.book_session(tutor.id, subject.id, _at(10), 60)

        assert _session_count(db) == 0


class TestRequestedTutor:
    def test_books_requested_tutor_over_idle_one(
        self, db, make_tutor, make_user, make_session, booking_service, student, tutor, subject
    ):
        make_tutor(name="Idle")
        for hour in (9, 11):
            make_session(make_user(), tutor, _at(hour, day=TUESDAY), 60)

        session = booking_service.book_session(
            student.id, subject.id, _at(10), 60, tutor_id=tutor.id
        )

        assert session.tutor_id == tutor.id

    def test_requested_tutor_outside_declared_hours(
        self, db, booking_service, student, tutor, subject
    ):
        with pytest.raises(NotEligibleException) as exc_info:
            booking_service.book_session(
                student.id, subject.id, _at(21, day=TUESDAY), 60, tutor_id=tutor.id
            )

        assert exc_info.value.code == NotEligibleException.NOT_AVAILABLE
        assert _session_count(db) == 0

    @pytest.mark.parametrize("who", ["not_a_tutor", "other_subject"])
    def test_requested_tutor_not_eligible(
        self, db, make_user, make_tutor, booking_service, student, subject, who
    ):
        if who == "not_a_tutor":
            requested = make_user()
        else:
            physics = Subject(code="PHYS101", title="Physics I")
            db.add(physics)
            db.commit()
            requested = make_tutor(subjects=[physics])

        with pytest.raises(NotEligibleException) as exc_info:
            booking_service.book_session(
                student.id, subject.id, _at(10), 60, tutor_id=requested.id
            )

        assert exc_info.value.code == NotEligibleException.NO_TUTOR

    def test_tutor_cannot_request_themselves(self, db, booking_service, tutor, subject):
        with pytest.raises(NotEligibleException):
            booking_service.book_session(tutor.id, subject.id, _at(10), 60, tutor_id=tutor.id)

        assert _session_count(db) == 0


class TestTutorSelection:
    def test_least_loaded_tutor_is_chosen(
        self, db, clock, make_tutor, make_user, student, subject, make_session
    ):
        busy = make_tutor(name="Busy")
        idle = make_tutor(name="Idle")
        for hour in (9, 11):
            make_session(make_user(), busy, _at(hour, day=TUESDAY), 60)

        service = BookingService(
            db, clock=clock, tutor_selector=TutorSelector(db, clock=clock, rng=random.Random(3))
        )
        session = service.book_session(student.id, subject.id, _at(10), 60)

        assert session.tutor_id == idle.id

    def test_load_ignores_sessions_outside_window(
        self, db, clock, make_tutor, make_user, student, subject, make_session
    ):
        far = make_tutor(name="Far")
        near = make_tutor(name="Near")
        make_session(make_user(), far, _at(10, day=MONDAY + timedelta(days=10)), 60)
        make_session(make_user(), near, _at(12, day=TUESDAY), 60)

        selector = TutorSelector(db, clock=clock)
        loads = selector.compute_loads([far.id, near.id])

        assert loads == {far.id: 0, near.id: 1}

    def test_cancelled_sessions_do_not_count(
        self, db, clock, make_tutor, make_user, subject, make_session
    ):
        tutor = make_tutor()
        make_session(make_user(), tutor, _at(12, day=TUESDAY), 60, status=SessionStatus.CANCELLED)

        assert TutorSelector(db, clock=clock).compute_loads([tutor.id]) == {tutor.id: 0}


class TestPlanAndCommit:
    def test_plan_does_not_write(self, db, booking_service, student, tutor, subject):
        request = booking_service.validate_booking_request(student.id, subject.id, _at(10), 60)

        plan = booking_service.plan_booking(request)

        assert plan.tutor_id == tutor.id
        assert plan.candidate_ids == [tutor.id]
        assert plan.scheduled_at == _at(10)
        assert _session_count(db) == 0

    def test_second_commit_for_same_slot_loses(
        self, db, make_user, booking_service, tutor, subject
    ):
        first_student = make_user()
        second_student = make_user()
        first_plan = booking_service.plan_booking(
            booking_service.validate_booking_request(first_student.id, subject.id, _at(10), 60)
        )
        second_plan = booking_service.plan_booking(
            booking_service.validate_booking_request(second_student.id, subject.id, _at(10), 60)
        )
        assert first_plan.tutor_id == second_plan.tutor_id == tutor.id

        booking_service.commit_booking(first_plan)
        with pytest.raises(RaceConflictException) as exc_info:
            booking_service.commit_booking(second_plan)

        assert exc_info.value.code == "SLOT_TAKEN"
        assert exc_info.value.details["tutor_id"] == tutor.id
        assert _session_count(db) == 1

    def test_commit_rechecks_student(
        self, db, make_tutor, booking_service, student, tutor, subject
    ):
        request = booking_service.validate_booking_request(student.id, subject.id, _at(10), 60)
        booking_service.commit_booking(booking_service.plan_booking(request))
        other_tutor = make_tutor()
        stale_plan = BookingPlan(
            request=request, tutor_id=other_tutor.id, candidate_ids=[other_tutor.id]
        )

        with pytest.raises(ConflictException) as exc_info:
            booking_service.commit_booking(stale_plan)

        assert exc_info.value.code == ConflictException.STUDENT
        assert _session_count(db) == 1
