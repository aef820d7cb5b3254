# backend/tutorlink/services/calendar_invite.py
"""
Calendar Invite Service for TutorLink

Builds iCalendar (RFC 5545) text for a session so each participant can add
it to their calendar. Every session keeps one UID for its whole life; the
SEQUENCE grows whenever the event changes so calendar clients replace the
earlier copy instead of adding a second event.

Emission is a post-commit side effect: a sink receives each invite and any
failure there is logged and dropped.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import InviteMethod
from ..core.timezone_utils import to_utc
from ..models.tutoring_session import TutoringSession
from ..models.user import User
from .base import BaseService

logger = logging.getLogger(__name__)

PRODID = "-//TutorLink//EN"
ICS_LINE_OCTETS = 75


def format_ics_datetime(value: datetime) -> str:
    """UTC basic format, e.g. ``20250106T060000Z``."""
    return to_utc(value).strftime("%Y%m%dT%H%M%SZ")


def escape_ics_text(text: Optional[str]) -> str:
    return (
        (text or "")
        .replace("\\", "\\\\")
        .replace("\n", "\\n")
        .replace(";", "\\;")
        .replace(",", "\\,")
    )


def fold_ics_line(line: str) -> str:
    """
    Fold a content line so no physical line exceeds 75 UTF-8 octets.

    Continuation lines start with a single space. Multi-byte characters
    are never split.
    """
    pieces = []
    current = ""
    size = 0
    for char in line:
        width = len(char.encode("utf-8"))
        if size + width > ICS_LINE_OCTETS:
            pieces.append(current)
            current = " "
            size = 1
        current += char
        size += width
    pieces.append(current)
    return "\r\n".join(pieces)


def build_ics(
    method: InviteMethod,
    uid: str,
    sequence: int,
    start: datetime,
    end: datetime,
    title: str,
    description: str,
    organizer_name: str,
    organizer_email: str,
    attendee_name: str,
    attendee_email: str,
    stamp: datetime,
) -> str:
    """
    Render a single-event VCALENDAR.

    ``start``, ``end`` and ``stamp`` are operating-local wall-clock values;
    they are written in UTC. Lines are folded at 75 octets and CRLF
    terminated.
    """
    cancelled = method == InviteMethod.CANCEL
    partstat = "DECLINED" if cancelled else "NEEDS-ACTION"
    rsvp = "FALSE" if cancelled else "TRUE"

    lines = [
        "BEGIN:VCALENDAR",
        f"PRODID:{PRODID}",
        "VERSION:2.0",
        "CALSCALE:GREGORIAN",
        f"METHOD:{method.value}",
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"SEQUENCE:{sequence}",
        f"DTSTAMP:{format_ics_datetime(stamp)}",
        f"DTSTART:{format_ics_datetime(start)}",
        f"DTEND:{format_ics_datetime(end)}",
        f"SUMMARY:{escape_ics_text(title)}",
        f"DESCRIPTION:{escape_ics_text(description)}",
        f"ORGANIZER;CN={escape_ics_text(organizer_name)}:MAILTO:{organizer_email}",
        f"ATTENDEE;CN={escape_ics_text(attendee_name)};ROLE=REQ-PARTICIPANT;"
        f"PARTSTAT={partstat};RSVP={rsvp}:MAILTO:{attendee_email}",
        f"STATUS:{'CANCELLED' if cancelled else 'CONFIRMED'}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(fold_ics_line(line) for line in lines) + "\r\n"


@dataclass(frozen=True)
class CalendarInvite:
    session_id: str
    attendee_email: str
    method: InviteMethod
    sequence: int
    body: str

    @property
    def filename(self) -> str:
        return f"session-{self.session_id}.ics"


InviteSink = Callable[[CalendarInvite], None]


def log_invite(invite: CalendarInvite) -> None:
    logger.info(
        f"Calendar {invite.method.value} for session {invite.session_id} "
        f"(sequence {invite.sequence}) to {invite.attendee_email}"
    )


def session_uid(session: TutoringSession) -> str:
    return session.calendar_uid or f"{session.id}@{settings.calendar_uid_domain}"


class CalendarInviteService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        sink: Optional[InviteSink] = None,
    ):
        super().__init__(db, clock)
        self.sink = sink or log_invite

    def _title(self, session: TutoringSession) -> str:
        subject = session.subject
        if subject is None:
            return "Tutoring session"
        return f"{subject.code} tutoring session"

    def _description(self, session: TutoringSession) -> str:
        tutor: Optional[User] = session.tutor
        student: Optional[User] = session.student
        parts = [f"Session {session.id}"]
        if tutor is not None:
            parts.append(f"Tutor: {tutor.display_name}")
        if student is not None:
            parts.append(f"Student: {student.display_name}")
        if session.cancel_reason:
            parts.append(f"Reason: {session.cancel_reason}")
        return "\n".join(parts)

    def build_session_invite(
        self,
        session: TutoringSession,
        method: InviteMethod,
        attendee: User,
    ) -> CalendarInvite:
        """Invite for one participant of ``session``."""
        body = build_ics(
            method=method,
            uid=session_uid(session),
            sequence=session.calendar_sequence or 0,
            start=session.scheduled_at,
            end=session.ends_at,
            title=self._title(session),
            description=self._description(session),
            organizer_name=settings.calendar_organizer_name,
            organizer_email=settings.calendar_organizer_email,
            attendee_name=attendee.display_name,
            attendee_email=attendee.email,
            stamp=self.clock.now(),
        )
        return CalendarInvite(
            session_id=session.id,
            attendee_email=attendee.email,
            method=method,
            sequence=session.calendar_sequence or 0,
            body=body,
        )

    def emit_session_invites(
        self, session: TutoringSession, method: InviteMethod
    ) -> List[CalendarInvite]:
        """
        Build and hand an invite for both participants to the sink.

        Never raises; invites that fail to build or send are skipped.
        """
        sent: List[CalendarInvite] = []
        for attendee in (session.student, session.tutor):
            if attendee is None:
                continue
            try:
                invite = self.build_session_invite(session, method, attendee)
                self.sink(invite)
            except Exception as e:
                self.logger.error(
                    f"Failed to emit calendar invite for session {session.id} "
                    f"to {attendee.id}: {str(e)}"
                )
                continue
            sent.append(invite)
        return sent
