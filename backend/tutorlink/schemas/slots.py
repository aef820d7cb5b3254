# backend/tutorlink/schemas/slots.py
"""Available slot listing."""

from datetime import datetime
from typing import List

from ._strict_base import StrictModel


class SlotResponse(StrictModel):
    start: datetime
    end: datetime
    tutor_count: int
    tutor_ids: List[str]


class SlotListResponse(StrictModel):
    subject_id: str
    duration_min: int
    window_days: int
    step_min: int
    slots: List[SlotResponse]
