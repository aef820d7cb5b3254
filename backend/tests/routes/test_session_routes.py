# backend/tests/routes/test_session_routes.py
"""
HTTP surface of the session engine.

The app runs against the per-test SQLite session and a pinned clock; the
caller is identified by the X-User-Id header.
"""

from datetime import datetime, timedelta

from fastapi import status
from fastapi.testclient import TestClient
import pytest

from tutorlink.api.dependencies.database import get_db
from tutorlink.api.dependencies.services import get_clock_dep
from tutorlink.core.enums import SessionStatus
from tutorlink.main import app

TUESDAY = datetime(2025, 1, 7)


def _at(hour, minute=0, day=TUESDAY):
    return day.replace(hour=hour, minute=minute)


def _as(user):
    return {"X-User-Id": user.id}


@pytest.fixture
def client(db, clock):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_clock_dep] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuthentication:
    def test_missing_header(self, client, subject):
        response = client.get("/api/v1/sessions/my")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_unknown_user(self, client):
        response = client.get(
            "/api/v1/sessions/my", headers={"X-User-Id": "01JGUNKNOWN0000000000000000"}
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_deactivated_user(self, client, make_user):
        user = make_user(deactivated=True)
        assert client.get("/api/v1/sessions/my", headers=_as(user)).status_code == 401

    def test_unverified_user(self, client, make_user):
        user = make_user(verified=False)
        response = client.get("/api/v1/sessions/my", headers=_as(user))
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["detail"] == "Not verified"

    def test_students_cannot_use_tutor_routes(self, client, student, tutor, make_session):
        session = make_session(student, tutor, _at(10), 60)
        response = client.post(f"/api/v1/tutor/sessions/{session.id}/accept", headers=_as(student))
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["detail"] == "Not a tutor"


class TestBookRoute:
    def test_book_returns_201(self, client, student, tutor, subject):
        response = client.post(
            "/api/v1/sessions/book",
            json={
                "subject_id": subject.id,
                "scheduled_at": "2025-01-07T10:00:00",
                "duration_min": 60,
            },
            headers=_as(student),
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["status"] == "PENDING"
        assert body["tutor_id"] == tutor.id
        assert body["scheduled_at"] == "2025-01-07T10:00:00"
        assert body["ends_at"] == "2025-01-07T11:00:00"
        assert body["calendar_sequence"] == 0

    def test_offset_is_converted(self, client, student, tutor, subject):
        response = client.post(
            "/api/v1/sessions/book",
            json={"subject_id": subject.id, "scheduled_at": "2025-01-07T02:00:00Z"},
            headers=_as(student),
        )

        assert response.status_code == 201
        assert response.json()["scheduled_at"] == "2025-01-07T10:00:00"

    def test_student_conflict_is_409(
        self, client, make_tutor, make_session, student, tutor, subject
    ):
        make_session(student, make_tutor(), _at(10, 30), 60)

        response = client.post(
            "/api/v1/sessions/book",
            json={"subject_id": subject.id, "scheduled_at": "2025-01-07T10:00:00"},
            headers=_as(student),
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["detail"]["code"] == "STUDENT_CONFLICT"

    def test_no_tutor_is_409(self, client, student, tutor, subject):
        response = client.post(
            "/api/v1/sessions/book",
            json={"subject_id": subject.id, "scheduled_at": "2025-01-11T10:00:00"},
            headers=_as(student),
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "NO_TUTOR"

    def test_busy_requested_tutor_is_409(
        self, client, make_user, make_session, student, tutor, subject
    ):
        make_session(make_user(), tutor, _at(10), 60)

        response = client.post(
            "/api/v1/sessions/book",
            json={
                "subject_id": subject.id,
                "scheduled_at": "2025-01-07T10:30:00",
                "tutor_id": tutor.id,
            },
            headers=_as(student),
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["detail"]["code"] == "TUTOR_CONFLICT"

    def test_validation_is_400(self, client, student, tutor, subject):
        response = client.post(
            "/api/v1/sessions/book",
            json={
                "subject_id": subject.id,
                "scheduled_at": "2025-01-07T10:00:00",
                "duration_min": 5,
            },
            headers=_as(student),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["code"] == "VALIDATION"

    def test_unknown_fields_are_rejected(self, client, student, tutor, subject):
        response = client.post(
            "/api/v1/sessions/book",
            json={
                "subject_id": subject.id,
                "scheduled_at": "2025-01-07T10:00:00",
                "status": "ACCEPTED",
            },
            headers=_as(student),
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestSessionRoutes:
    @pytest.fixture
    def accepted(self, make_session, student, tutor):
        return make_session(student, tutor, _at(10), 60, status=SessionStatus.ACCEPTED)

    def test_my_sessions_filter(self, client, make_session, accepted, student, tutor):
        make_session(student, tutor, _at(15), 60)

        everything = client.get("/api/v1/sessions/my", headers=_as(student)).json()
        only_accepted = client.get(
            "/api/v1/sessions/my", params={"status": "ACCEPTED"}, headers=_as(student)
        ).json()

        assert everything["total"] == 2
        assert [item["id"] for item in only_accepted["items"]] == [accepted.id]

    def test_get_hides_other_peoples_sessions(self, client, make_user, accepted, student):
        response = client.get(f"/api/v1/sessions/{accepted.id}", headers=_as(student))
        assert response.status_code == 200
        response = client.get(f"/api/v1/sessions/{accepted.id}", headers=_as(make_user()))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_malformed_session_id(self, client, student):
        response = client.get("/api/v1/sessions/not-a-ulid", headers=_as(student))
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_proposal_round_trip(self, client, accepted, student, tutor):
        proposed = client.post(
            f"/api/v1/sessions/{accepted.id}/proposal",
            json={"proposed_at": "2025-01-07T14:00:00", "note": "Later?"},
            headers=_as(student),
        )
        assert proposed.status_code == 200
        assert proposed.json()["proposal_status"] == "PENDING"

        own = client.post(f"/api/v1/sessions/{accepted.id}/proposal/accept", headers=_as(student))
        assert own.status_code == status.HTTP_403_FORBIDDEN

        accepted_response = client.post(
            f"/api/v1/sessions/{accepted.id}/proposal/accept", headers=_as(tutor)
        )
        body = accepted_response.json()
        assert accepted_response.status_code == 200
        assert body["scheduled_at"] == "2025-01-07T14:00:00"
        assert body["status"] == "PENDING"
        assert body["proposal_status"] == "ACCEPTED"

    def test_reject_without_proposal(self, client, accepted, tutor):
        response = client.post(
            f"/api/v1/sessions/{accepted.id}/proposal/reject", headers=_as(tutor)
        )
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "NO_PROPOSAL"

    def test_cancel_with_and_without_body(self, client, make_session, accepted, student, tutor):
        response = client.post(
            f"/api/v1/sessions/{accepted.id}/cancel", json={"reason": "Exam"}, headers=_as(student)
        )
        assert response.json()["status"] == "CANCELLED"
        assert response.json()["cancel_reason"] == "Exam"

        other = make_session(student, tutor, _at(15), 60)
        response = client.post(f"/api/v1/sessions/{other.id}/cancel", headers=_as(tutor))
        assert response.status_code == 200
        assert response.json()["cancel_reason"] is None

    def test_check_conflict(self, client, make_user, make_session, accepted, student, tutor):
        make_session(make_user(), tutor, _at(14), 60)

        response = client.post(
            f"/api/v1/sessions/{accepted.id}/check-conflict",
            json={"scheduled_at": "2025-01-07T14:30:00"},
            headers=_as(student),
        )

        assert response.json() == {
            "student_conflict": False,
            "tutor_conflict": True,
            "has_conflict": True,
        }

    def test_invite_download(self, client, accepted, student):
        response = client.get(f"/api/v1/sessions/{accepted.id}/invite.ics", headers=_as(student))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/calendar")
        assert response.headers["content-disposition"] == (
            f'attachment; filename="session-{accepted.id}.ics"'
        )
        unfolded = response.text.replace("\r\n ", "")
        assert "METHOD:REQUEST" in unfolded
        assert f"MAILTO:{student.email}" in unfolded

    def test_cancelled_invite_is_a_cancel(self, client, accepted, student):
        client.post(f"/api/v1/sessions/{accepted.id}/cancel", headers=_as(student))

        response = client.get(f"/api/v1/sessions/{accepted.id}/invite.ics", headers=_as(student))

        assert "METHOD:CANCEL" in response.text
        assert "SEQUENCE:1" in response.text


class TestTutorSessionRoutes:
    def test_accept_then_complete(self, client, clock, make_session, student, tutor):
        session = make_session(student, tutor, _at(10), 60)

        accepted = client.post(f"/api/v1/tutor/sessions/{session.id}/accept", headers=_as(tutor))
        assert accepted.json()["status"] == "ACCEPTED"

        early = client.post(f"/api/v1/tutor/sessions/{session.id}/complete", headers=_as(tutor))
        assert early.status_code == 409
        assert early.json()["detail"]["code"] == "TOO_EARLY"

        clock.set(_at(11))
        done = client.post(f"/api/v1/tutor/sessions/{session.id}/complete", headers=_as(tutor))
        assert done.json()["status"] == "COMPLETED"

    def test_accept_conflict(self, client, make_user, make_session, student, tutor):
        session = make_session(student, tutor, _at(10), 60)
        make_session(make_user(), tutor, _at(10, 30), 60)

        response = client.post(f"/api/v1/tutor/sessions/{session.id}/accept", headers=_as(tutor))

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "TUTOR_CONFLICT"

    def test_reject(self, client, make_session, student, tutor):
        session = make_session(student, tutor, _at(10), 60)

        response = client.post(
            f"/api/v1/tutor/sessions/{session.id}/reject",
            json={"reason": "Travelling"},
            headers=_as(tutor),
        )

        assert response.json()["status"] == "CANCELLED"
        assert response.json()["cancel_reason"] == "Travelling"


class TestSubjectAndAvailabilityRoutes:
    def test_slots(self, client, make_tutor, student, subject):
        afternoon_tutor = make_tutor(slots={"MON": [("14:00", "16:00")]})

        response = client.get(
            f"/api/v1/subjects/{subject.id}/slots",
            params={"duration_min": 60, "window_days": 1, "step_min": 30},
            headers=_as(student),
        )

        body = response.json()
        assert response.status_code == 200
        assert [slot["start"] for slot in body["slots"]] == [
            "2025-01-06T14:00:00",
            "2025-01-06T14:30:00",
            "2025-01-06T15:00:00",
        ]
        assert body["slots"][0]["tutor_count"] == 1
        assert all(slot["tutor_ids"] == [afternoon_tutor.id] for slot in body["slots"])

    def test_slot_parameters_are_clamped(self, client, student, subject):
        response = client.get(
            f"/api/v1/subjects/{subject.id}/slots",
            params={"duration_min": 1000, "window_days": 90, "step_min": 1},
            headers=_as(student),
        )

        body = response.json()
        assert (body["duration_min"], body["window_days"], body["step_min"]) == (180, 14, 5)
        assert body["slots"] == []

    def test_unknown_subject(self, client, student):
        response = client.get(
            "/api/v1/subjects/01JGZZZZZZZZZZZZZZZZZZZZZZ/slots", headers=_as(student)
        )
        assert response.status_code == 404

    def test_availability_round_trip(self, client, tutor):
        update = client.put(
            "/api/v1/tutor/availability",
            json={"days": [{"day": "WED", "slots": [{"start": "09:00", "end": "11:00"}]}]},
            headers=_as(tutor),
        )
        assert update.status_code == 200

        body = client.get("/api/v1/tutor/availability", headers=_as(tutor)).json()
        assert body["declared"] is True
        days = [day["day"] for day in body["days"]]
        assert days == ["MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"]
        assert body["days"][2]["slots"] == [{"start": "09:00", "end": "11:00"}]
        assert body["days"][0]["off"] is True

    def test_undeclared_availability(self, client, make_tutor):
        tutor = make_tutor(raw_availability="")

        body = client.get("/api/v1/tutor/availability", headers=_as(tutor)).json()

        assert body["declared"] is False
        assert all(day["off"] for day in body["days"])


class TestOperationalEndpoints:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_prometheus(self, client, student, tutor, subject):
        client.post(
            "/api/v1/sessions/book",
            json={"subject_id": subject.id, "scheduled_at": "2025-01-07T10:00:00"},
            headers=_as(student),
        )

        response = client.get("/metrics/prometheus")

        assert response.status_code == 200
        assert "tutorlink_booking_outcomes_total" in response.text
