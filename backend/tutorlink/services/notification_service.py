# backend/tutorlink/services/notification_service.py
"""
Notification Service for TutorLink

Writes in-app notifications for session events. Delivery is fire and
forget: every public method commits its own small transaction after the
caller's primary commit, and a failure is logged and counted but never
raised back into the lifecycle operation that triggered it.
"""

from datetime import datetime
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.enums import NotificationType, ReminderKind, Viewer
from ..models.notification import Notification
from ..models.tutoring_session import TutoringSession
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..repositories.notification_repository import NotificationRepository
from .base import BaseService

logger = logging.getLogger(__name__)

SESSION_LIST_PATHS = {
    Viewer.STUDENT: "/dashboard/student/sessions",
    Viewer.TUTOR: "/dashboard/tutor/sessions",
}


def format_when(value: datetime) -> str:
    return value.strftime("%a %d %b %Y, %H:%M")


def session_href(viewer: Viewer, session_id: Optional[str] = None) -> str:
    base = SESSION_LIST_PATHS[viewer]
    if not session_id:
        return base
    return f"{base}?focus={quote(session_id, safe='')}"


def viewer_for(session: TutoringSession, user_id: str) -> Viewer:
    return Viewer.TUTOR if user_id == session.tutor_id else Viewer.STUDENT


class NotificationService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        repository: Optional[NotificationRepository] = None,
    ):
        super().__init__(db, clock)
        self.repository = repository or RepositoryFactory.create_notification_repository(db)

    def notify(
        self,
        event: NotificationType,
        user_id: Optional[str],
        viewer: Viewer,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[Notification]:
        """
        Persist a notification for ``user_id``.

        ``data`` always gains ``viewer`` and ``href``; when it names a
        ``session_id`` the link focuses that session. Returns None when
        there is no recipient or the write failed.
        """
        if not user_id:
            return None

        payload: Dict[str, Any] = {**(data or {}), "viewer": viewer.value}
        session_id = str(payload.get("session_id") or "").strip()
        payload["href"] = session_href(viewer, session_id or None)
        if session_id:
            payload["focus_session_id"] = session_id

        try:
            with self.transaction():
                notification = self.repository.create(
                    user_id=user_id,
                    type=event.value,
                    title=title,
                    body=body,
                    data=payload,
                    status="DELIVERED",
                    sent_at=self.clock.now(),
                )
        except Exception as e:
            self.logger.error(
                f"Failed to record {event.value} notification for {user_id}: {str(e)}"
            )
            prometheus_metrics.inc_notification(event.value, "failed")
            return None

        prometheus_metrics.inc_notification(event.value, "delivered")
        return notification

    def list_for_user(self, user_id: str, limit: int = 50) -> List[Notification]:
        return self.repository.list_for_user(user_id, limit=limit)

    # Session events

    def session_booked(self, session: TutoringSession) -> None:
        self.notify(
            NotificationType.SESSION_BOOKED,
            session.tutor_id,
            Viewer.TUTOR,
            "New Session Request",
            f"A student booked a session for {format_when(session.scheduled_at)}.",
            {"session_id": session.id, "student_id": session.student_id},
        )

    def booking_confirmed(self, session: TutoringSession) -> None:
        when = format_when(session.scheduled_at)
        self.notify(
            NotificationType.BOOKING_CONFIRMED,
            session.student_id,
            Viewer.STUDENT,
            "Booking Confirmed",
            f"Your session is confirmed for {when}.",
            {"session_id": session.id},
        )
        self.notify(
            NotificationType.BOOKING_CONFIRMED,
            session.tutor_id,
            Viewer.TUTOR,
            "Session Confirmed",
            f"You confirmed a session for {when}.",
            {"session_id": session.id},
        )

    def proposal_sent(self, session: TutoringSession, proposed_by_user_id: str) -> None:
        recipient = session.counterpart_of(proposed_by_user_id)
        self.notify(
            NotificationType.TIME_PROPOSAL,
            recipient,
            viewer_for(session, recipient),
            "New Time Proposed",
            f"A new time has been proposed: {format_when(session.proposed_at)}. "
            "Please review and respond.",
            {
                "session_id": session.id,
                "proposed_by_user_id": proposed_by_user_id,
                "proposed_at": session.proposed_at.isoformat(),
            },
        )

    def proposal_accepted(self, session: TutoringSession, accepted_by_user_id: str) -> None:
        recipient = session.counterpart_of(accepted_by_user_id)
        self.notify(
            NotificationType.TIME_PROPOSAL_ACCEPTED,
            recipient,
            viewer_for(session, recipient),
            "Proposal Accepted",
            f"The new time was accepted: {format_when(session.scheduled_at)}.",
            {"session_id": session.id, "new_time": session.scheduled_at.isoformat()},
        )

    def proposal_rejected(self, session: TutoringSession, rejected_by_user_id: str) -> None:
        recipient = session.counterpart_of(rejected_by_user_id)
        self.notify(
            NotificationType.TIME_PROPOSAL_REJECTED,
            recipient,
            viewer_for(session, recipient),
            "Proposal Rejected",
            "Your proposed time was rejected. You may propose another time.",
            {"session_id": session.id},
        )

    def session_cancelled(
        self,
        session: TutoringSession,
        cancelled_by_user_id: str,
        reason: Optional[str] = None,
    ) -> None:
        recipient = session.counterpart_of(cancelled_by_user_id)
        body = f"Your session on {format_when(session.scheduled_at)} was cancelled."
        if reason:
            body = f"{body} Reason: {reason}"
        self.notify(
            NotificationType.SESSION_CANCELLED,
            recipient,
            viewer_for(session, recipient),
            "Session Cancelled",
            body,
            {"session_id": session.id, "reason": reason},
        )

    def session_completed(self, session: TutoringSession, auto: bool = False) -> None:
        recipients = [session.student_id, session.tutor_id] if auto else [session.student_id]
        for recipient in recipients:
            self.notify(
                NotificationType.SESSION_COMPLETED,
                recipient,
                viewer_for(session, recipient),
                "Session Completed",
                f"Your session on {format_when(session.scheduled_at)} is complete.",
                {"session_id": session.id, "auto": auto},
            )

    def session_reminder(self, session: TutoringSession, kind: ReminderKind) -> None:
        for recipient in (session.student_id, session.tutor_id):
            self.notify(
                NotificationType.SESSION_REMINDER,
                recipient,
                viewer_for(session, recipient),
                "Upcoming Session",
                f"Your session starts {kind.label} ({format_when(session.scheduled_at)}).",
                {"session_id": session.id, "kind": kind.value},
            )
