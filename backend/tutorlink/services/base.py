# backend/tutorlink/services/base.py
"""
Base class for TutorLink services.

A service holds the request's database session and a clock. It is the
only layer that commits: ``transaction()`` wraps one unit of work, and
``measure_operation`` times public operations into Prometheus.
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import Clock, get_clock
from ..core.exceptions import RepositoryException, ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or get_clock()
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit the enclosed work, or roll all of it back.

        Driver and repository errors become ServiceException; domain
        exceptions raised inside the block propagate unchanged after the
        rollback.
        """
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error(f"Rolled back after database error: {str(e)}")
            raise ServiceException("Database operation failed") from e
        except RepositoryException as e:
            self.db.rollback()
            self.logger.error(f"Rolled back after repository error: {str(e)}")
            raise ServiceException("Database operation failed") from e
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """Record duration and outcome of the decorated method."""

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(f"{operation_name} took {elapsed:.2f}s")
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context) -> None:
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})
