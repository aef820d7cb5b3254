# backend/tutorlink/tasks/celery_app.py
"""
Celery application for TutorLink's background sweeps.

Redis serves as broker and result backend. The worker only runs the
session maintenance tasks, which beat fires once a minute on the
``maintenance`` queue.
"""

import logging
import os
from typing import Any, Type, cast

from celery import Celery, Task
from celery.signals import setup_logging

from tutorlink.core.config import settings

logger = logging.getLogger(__name__)


def _broker_url() -> str:
    url = os.getenv("CELERY_BROKER_URL") or os.getenv("REDIS_URL") or settings.redis_url
    # Redis URLs without a database index default to db 0
    if url.rstrip("/").rsplit("/", 1)[-1].isdigit():
        return url
    return f"{url.rstrip('/')}/0"


def create_celery_app() -> Celery:
    broker_url = _broker_url()
    app = Celery(
        "tutorlink",
        broker=broker_url,
        backend=os.getenv("CELERY_RESULT_BACKEND") or broker_url,
    )

    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone=settings.operating_timezone,
        enable_utc=True,
        worker_hijack_root_logger=False,
        worker_prefetch_multiplier=1,
        # A sweep must finish before the next beat tick
        task_soft_time_limit=50,
        task_time_limit=55,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        imports=("tutorlink.tasks.session_tasks",),
        task_routes={"sessions.*": {"queue": "maintenance"}},
    )

    from tutorlink.tasks.beat_schedule import get_beat_schedule

    app.conf.beat_schedule = get_beat_schedule(settings.environment)
    return app


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


celery_app = create_celery_app()


class BaseTask(Task):  # type: ignore[misc]
    """Logs the outcome of every sweep."""

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.error(
            f"{self.name}[{task_id}] failed: {exc}",
            exc_info=True,
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval: Any, task_id: str, args: Any, kwargs: Any) -> None:
        logger.info(
            f"{self.name}[{task_id}] finished: {retval}",
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_success(retval, task_id, args, kwargs)


celery_app.Task = cast(Type[Task], BaseTask)
