# backend/tutorlink/tasks/session_tasks.py
"""
Celery tasks for session maintenance.

- ``sessions.auto_complete`` completes ACCEPTED sessions once they have
  ended plus the grace period.
- ``sessions.send_reminders`` sends the 24h, 1h and 5m reminders.
"""

from contextlib import contextmanager
from typing import Dict, Iterator

from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from tutorlink.database import SessionLocal
from tutorlink.services.session_maintenance import SessionMaintenanceService
from tutorlink.tasks.celery_app import celery_app

logger = get_task_logger(__name__)


@contextmanager
def _session_scope() -> Iterator[Session]:
    """Provide transactional scope for use in tasks."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@celery_app.task(name="sessions.auto_complete", max_retries=0, queue="maintenance")
def auto_complete_sessions() -> Dict[str, int]:
    """Complete sessions that ended more than the grace period ago."""
    with _session_scope() as db:
        result = SessionMaintenanceService(db).auto_complete_due_sessions()
    if result.processed:
        logger.info("Auto-completed %s sessions", result.processed)
    return result.to_dict()


@celery_app.task(name="sessions.send_reminders", max_retries=0, queue="maintenance")
def send_session_reminders() -> Dict[str, int]:
    """Send reminders whose send time falls in the current window."""
    with _session_scope() as db:
        result = SessionMaintenanceService(db).send_session_reminders()
    if result.processed:
        logger.info("Sent %s session reminders", result.processed)
    return result.to_dict()
