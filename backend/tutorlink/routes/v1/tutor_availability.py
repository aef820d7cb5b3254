# backend/tutorlink/routes/v1/tutor_availability.py
"""
Tutor availability endpoints - API v1

Endpoints:
    GET / - The caller's declared weekly availability
    PUT / - Replace it
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends

from ...api.dependencies.auth import get_current_tutor
from ...api.dependencies.services import get_tutor_availability_service
from ...core.enums import DayKey
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.availability import (
    AvailabilityResponse,
    AvailabilityUpdateRequest,
    DayAvailabilitySchema,
)
from ...services.availability import DeclaredAvailability
from ...services.tutor_availability_service import TutorAvailabilityService
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tutor-availability-v1"])


def _to_response(availability: DeclaredAvailability | None) -> AvailabilityResponse:
    if availability is None:
        days = [DayAvailabilitySchema(day=key.value, off=True) for key in DayKey.ordered()]
        return AvailabilityResponse(declared=False, days=days)
    return AvailabilityResponse(
        declared=True,
        days=[DayAvailabilitySchema(**day) for day in availability.to_list()],
    )


@router.get("", response_model=AvailabilityResponse)
async def get_my_availability(
    current_user: User = Depends(get_current_tutor),
    service: TutorAvailabilityService = Depends(get_tutor_availability_service),
) -> AvailabilityResponse:
    availability = await asyncio.to_thread(service.get_tutor_availability, current_user.id)
    return _to_response(availability)


@router.put("", response_model=AvailabilityResponse)
async def replace_my_availability(
    payload: AvailabilityUpdateRequest = Body(...),
    current_user: User = Depends(get_current_tutor),
    service: TutorAvailabilityService = Depends(get_tutor_availability_service),
) -> AvailabilityResponse:
    """Replace the whole week; days left out become days off."""
    raw = [day.model_dump() for day in payload.days]
    try:
        availability = await asyncio.to_thread(
            service.save_tutor_availability, current_user.id, raw
        )
    except DomainException as e:
        handle_domain_exception(e)
    return _to_response(availability)
