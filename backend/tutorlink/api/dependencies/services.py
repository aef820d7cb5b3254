# backend/tutorlink/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Every service built for a request shares that request's database session
and the same clock. Tests override ``get_clock_dep`` to pin time.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.clock import Clock, get_clock
from ...services.booking_service import BookingService
from ...services.calendar_invite import CalendarInviteService
from ...services.notification_service import NotificationService
from ...services.session_lifecycle import SessionLifecycleService
from ...services.slot_generator import SlotGenerator
from ...services.tutor_availability_service import TutorAvailabilityService
from .database import get_db

logger = logging.getLogger(__name__)


def get_clock_dep() -> Clock:
    return get_clock()


def get_notification_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock_dep)
) -> NotificationService:
    return NotificationService(db, clock=clock)


def get_calendar_invite_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock_dep)
) -> CalendarInviteService:
    return CalendarInviteService(db, clock=clock)


def get_slot_generator(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock_dep)
) -> SlotGenerator:
    return SlotGenerator(db, clock=clock)


def get_booking_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock_dep),
    notification_service: NotificationService = Depends(get_notification_service),
) -> BookingService:
    """
    Get booking service instance.

    Args:
        db: Database session
        clock: Source of "now"
        notification_service: Post-commit notifications

    Returns:
        BookingService instance
    """
    return BookingService(db, clock=clock, notification_service=notification_service)


def get_session_lifecycle_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock_dep),
    notification_service: NotificationService = Depends(get_notification_service),
    invite_service: CalendarInviteService = Depends(get_calendar_invite_service),
) -> SessionLifecycleService:
    return SessionLifecycleService(
        db,
        clock=clock,
        notification_service=notification_service,
        invite_service=invite_service,
    )


def get_tutor_availability_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock_dep)
) -> TutorAvailabilityService:
    return TutorAvailabilityService(db, clock=clock)
