# backend/tests/integration/repositories/test_session_repository_db.py
"""
SessionRepository and TutorRepository queries against SQLite.
"""

from datetime import datetime, timedelta

import pytest

from tutorlink.core.enums import SessionStatus
from tutorlink.repositories.session_repository import SessionRepository
from tutorlink.repositories.tutor_repository import TutorRepository

TUESDAY = datetime(2025, 1, 7)


def _at(hour, minute=0):
    return TUESDAY.replace(hour=hour, minute=minute)


@pytest.fixture
def repository(db):
    return SessionRepository(db)


class TestOverlapQueries:
    def test_half_open_overlap(self, repository, make_session, student, tutor):
        session = make_session(student, tutor, _at(10), 60)

        assert repository.get_tutor_conflicts(tutor.id, _at(10, 30), _at(11, 30)) == [session]
        assert repository.get_tutor_conflicts(tutor.id, _at(11), _at(12)) == []
        assert repository.get_tutor_conflicts(tutor.id, _at(9), _at(10)) == []
        assert repository.get_student_conflicts(student.id, _at(9, 30), _at(10, 1)) == [session]

    def test_exclusion_and_closed_statuses(self, repository, make_session, student, tutor):
        session = make_session(student, tutor, _at(10), 60)
        make_session(student, tutor, _at(10), 60, status=SessionStatus.CANCELLED)
        make_session(student, tutor, _at(10), 60, status=SessionStatus.COMPLETED)

        assert repository.get_tutor_conflicts(tutor.id, _at(10), _at(11)) == [session]
        assert repository.get_tutor_conflicts(
            tutor.id, _at(10), _at(11), exclude_session_id=session.id
        ) == []

    def test_grouped_by_tutor(self, repository, make_tutor, make_session, student, tutor):
        other = make_tutor()
        mine = make_session(student, tutor, _at(10), 60)
        theirs = make_session(student, other, _at(12), 60)

        grouped = repository.get_active_sessions_for_tutors([tutor.id, other.id], _at(0), _at(23))

        assert grouped[tutor.id] == [mine]
        assert grouped[other.id] == [theirs]
        assert repository.get_active_sessions_for_tutors([], _at(0), _at(23)) == {}


class TestCountsAndScans:
    def test_counts_include_idle_tutors(self, repository, make_tutor, make_session, student, tutor):
        idle = make_tutor()
        make_session(student, tutor, _at(9), 60)
        make_session(student, tutor, _at(14), 60, status=SessionStatus.ACCEPTED)

        counts = repository.count_active_starting_between(
            [tutor.id, idle.id], _at(0), _at(0) + timedelta(days=1)
        )

        assert counts == {tutor.id: 2, idle.id: 0}

    def test_mark_completed_only_once(self, db, repository, make_session, student, tutor):
        session = make_session(student, tutor, _at(9), 60, status=SessionStatus.ACCEPTED)

        assert repository.mark_completed_if_accepted(session.id, _at(11)) is True
        db.commit()
        assert repository.mark_completed_if_accepted(session.id, _at(12)) is False

    def test_accepted_starting_between(self, repository, make_session, student, tutor):
        accepted = make_session(student, tutor, _at(9), 60, status=SessionStatus.ACCEPTED)
        make_session(student, tutor, _at(11), 60)

        assert repository.get_accepted_starting_between(_at(9), _at(9, 1)) == [accepted]
        assert repository.get_accepted_starting_between(_at(9, 1), _at(12)) == []


class TestTutorRepository:
    def test_lock_tutor_returns_row(self, db, tutor):
        assert TutorRepository(db).lock_tutor(tutor.id).id == tutor.id

