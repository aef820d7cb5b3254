# backend/tutorlink/routes/v1/subjects.py
"""
Subject endpoints - API v1

Endpoints:
    GET /{subject_id}/slots - Bookable start times for the subject
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from ...api.dependencies.auth import get_current_user
from ...api.dependencies.services import get_slot_generator
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.slots import SlotListResponse, SlotResponse
from ...services.slot_generator import SlotGenerator
from .common import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["subjects-v1"])


@router.get("/{subject_id}/slots", response_model=SlotListResponse)
async def list_available_slots(
    subject_id: str = Path(..., description="Subject ULID", pattern=ULID_PATH_PATTERN),
    duration_min: Optional[int] = Query(None, description="Session length in minutes"),
    window_days: Optional[int] = Query(None, description="Days to search from today"),
    step_min: Optional[int] = Query(None, description="Minutes between candidate starts"),
    current_user: User = Depends(get_current_user),
    slot_generator: SlotGenerator = Depends(get_slot_generator),
) -> SlotListResponse:
    """
    Out-of-range parameters are clamped rather than rejected; the values
    actually used are echoed back.
    """
    duration, days, step = slot_generator.normalize_parameters(
        duration_min, window_days, step_min
    )
    try:
        slots = await asyncio.to_thread(
            slot_generator.compute_available_slots, subject_id, duration, days, step
        )
    except DomainException as e:
        handle_domain_exception(e)

    return SlotListResponse(
        subject_id=subject_id,
        duration_min=duration,
        window_days=days,
        step_min=step,
        slots=[
            SlotResponse(
                start=slot.start,
                end=slot.end,
                tutor_count=slot.tutor_count,
                tutor_ids=list(slot.tutor_ids),
            )
            for slot in slots
        ],
    )
