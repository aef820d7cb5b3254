# backend/tutorlink/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for TutorLink.

Both maintenance sweeps run every minute. The reminder sweep looks one
reminder window ahead, so its period must not exceed
``settings.reminder_window_seconds``.
"""

from typing import Any, Dict

from celery.schedules import crontab

CELERYBEAT_SCHEDULE: Dict[str, Dict[str, Any]] = {
    "auto-complete-sessions": {
        "task": "sessions.auto_complete",
        "schedule": crontab(minute="*"),
        "options": {"queue": "maintenance", "expires": 55},
    },
    "send-session-reminders": {
        "task": "sessions.send_reminders",
        "schedule": crontab(minute="*"),
        "options": {"queue": "maintenance", "expires": 55},
    },
}


def get_beat_schedule(environment: str) -> Dict[str, Dict[str, Any]]:
    """
    Beat schedule for an environment.

    Tests never run beat, so they get an empty schedule.
    """
    if (environment or "").strip().lower() == "test":
        return {}
    return {name: dict(entry) for name, entry in CELERYBEAT_SCHEDULE.items()}
