# backend/tutorlink/repositories/notification_repository.py
"""Notification and reminder-ledger persistence."""

from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from ..core.enums import ReminderKind
from ..models.notification import Notification
from ..models.session_reminder import SessionReminder
from .base_repository import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    def __init__(self, db: Session):
        super().__init__(db, Notification)

    def list_for_user(self, user_id: str, limit: int = 50) -> List[Notification]:
        query = (
            self._build_query()
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        return self._execute_query(query)


class SessionReminderRepository(BaseRepository[SessionReminder]):
    def __init__(self, db: Session):
        super().__init__(db, SessionReminder)

    def already_sent(self, session_id: str, kind: ReminderKind) -> bool:
        return self.exists(session_id=session_id, kind=kind.value)

    def record(self, session_id: str, kind: ReminderKind, send_at: datetime) -> SessionReminder:
        """Insert the ledger row; the unique (session, kind) key rejects repeats."""
        return self.create(session_id=session_id, kind=kind.value, send_at=send_at)
