# backend/tutorlink/schemas/availability.py
"""
Declared availability schemas.

The request side is deliberately loose about times: slots that are not
valid ``HH:MM`` ranges are dropped by the service, not rejected here.
"""

from typing import List

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel


class TimeSlotSchema(StrictModel):
    start: str = Field(..., description="HH:MM")
    end: str = Field(..., description="HH:MM, or 24:00 for end of day")


class DayAvailabilitySchema(StrictModel):
    day: str = Field(..., description="MON..SUN")
    off: bool = False
    slots: List[TimeSlotSchema] = Field(default_factory=list)


class AvailabilityUpdateRequest(StrictRequestModel):
    days: List[DayAvailabilitySchema]


class AvailabilityResponse(StrictModel):
    declared: bool
    days: List[DayAvailabilitySchema]
