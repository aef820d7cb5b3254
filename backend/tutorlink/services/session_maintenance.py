# backend/tutorlink/services/session_maintenance.py
"""
Session Maintenance Service for TutorLink

Periodic sweeps run from Celery beat:

- auto-completion of ACCEPTED sessions once their end plus a grace period
  has passed, so nobody has to remember to click "complete";
- pre-session reminders 24 hours, 1 hour and 5 minutes before the start.

Each session is handled in its own small transaction so one bad row does
not stop the sweep.
"""

from dataclasses import dataclass
from datetime import timedelta
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import ReminderKind
from ..core.exceptions import RepositoryException, ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..repositories.notification_repository import SessionReminderRepository
from ..repositories.session_repository import SessionRepository
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    scanned: int = 0
    processed: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {"scanned": self.scanned, "processed": self.processed, "failed": self.failed}


class SessionMaintenanceService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        notification_service: Optional[NotificationService] = None,
        session_repository: Optional[SessionRepository] = None,
        reminder_repository: Optional[SessionReminderRepository] = None,
    ):
        super().__init__(db, clock)
        self.session_repository = (
            session_repository or RepositoryFactory.create_session_repository(db)
        )
        self.reminder_repository = (
            reminder_repository or RepositoryFactory.create_session_reminder_repository(db)
        )
        self.notification_service = notification_service or NotificationService(
            db, clock=self.clock
        )

    @BaseService.measure_operation("auto_complete_due_sessions")
    def auto_complete_due_sessions(self, limit: Optional[int] = None) -> SweepResult:
        """
        Complete ACCEPTED sessions whose ``ends_at + grace <= now``.

        Oldest first, at most ``limit`` (the configured batch size by
        default). The status change is a conditional update, so a session
        completed concurrently by its tutor is skipped rather than completed
        twice. Both participants are notified of each auto-completion.
        """
        now = self.clock.now()
        cutoff = now - timedelta(minutes=settings.auto_complete_grace_minutes)
        batch = limit or settings.auto_complete_batch_size
        result = SweepResult()

        for session in self.session_repository.get_due_for_auto_complete(cutoff, batch):
            result.scanned += 1
            try:
                with self.transaction():
                    changed = self.session_repository.mark_completed_if_accepted(
                        session.id, now
                    )
            except (RepositoryException, ServiceException) as e:
                result.failed += 1
                self.logger.error(f"Auto-complete failed for session {session.id}: {str(e)}")
                continue

            if not changed:
                self.logger.debug(f"Session {session.id} no longer ACCEPTED; skipped")
                continue

            result.processed += 1
            prometheus_metrics.inc_session_transition("auto_complete")
            self.notification_service.session_completed(session, auto=True)

        if result.scanned:
            self.logger.info(f"Auto-complete sweep: {result.to_dict()}")
        return result

    @BaseService.measure_operation("send_session_reminders")
    def send_session_reminders(self) -> SweepResult:
        """
        Send every reminder whose send time falls in ``[now, now + window)``.

        A reminder of a given kind is sent at most once per session: the
        ledger row is written before the notifications go out.
        """
        now = self.clock.now()
        window = timedelta(seconds=settings.reminder_window_seconds)
        result = SweepResult()

        for kind in ReminderKind:
            lead = timedelta(minutes=kind.minutes_before)
            sessions = self.session_repository.get_accepted_starting_between(
                now + lead, now + lead + window
            )
            for session in sessions:
                result.scanned += 1
                try:
                    if self.reminder_repository.already_sent(session.id, kind):
                        continue
                    with self.transaction():
                        self.reminder_repository.record(
                            session.id, kind, session.scheduled_at - lead
                        )
                except (RepositoryException, ServiceException) as e:
                    result.failed += 1
                    self.logger.error(
                        f"Could not record {kind.value} reminder for {session.id}: {str(e)}"
                    )
                    continue

                result.processed += 1
                prometheus_metrics.inc_reminder_sent(kind.value)
                self.notification_service.session_reminder(session, kind)

        if result.processed:
            self.logger.info(f"Reminder sweep: {result.to_dict()}")
        return result
