# backend/tutorlink/schemas/session.py
"""
Session schemas for TutorLink.

Datetimes without an offset are read as operating-timezone wall-clock
times; values with an offset are converted by the service layer.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from ..core.enums import ProposalStatus, SessionStatus
from ._strict_base import OrmResponseModel, StrictModel, StrictRequestModel


def _strip_optional(v: Optional[str]) -> Optional[str]:
    return v.strip() if v else v


class BookSessionRequest(StrictRequestModel):
    """Book a session with a specific tutor, or let the server choose one."""

    subject_id: str = Field(..., description="Subject to be taught")
    scheduled_at: datetime = Field(..., description="Requested start time")
    duration_min: Optional[int] = Field(
        None, description="Length in minutes; the server default when omitted"
    )
    tutor_id: Optional[str] = Field(
        None, description="Requested tutor; the least busy eligible tutor when omitted"
    )

    @field_validator("tutor_id")
    @classmethod
    def clean_tutor_id(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v) or None


class ProposeRescheduleRequest(StrictRequestModel):
    proposed_at: datetime = Field(..., description="Proposed new start")
    proposed_end_at: Optional[datetime] = Field(
        None, description="Proposed end; defaults to start plus the session length"
    )
    note: Optional[str] = Field(None, max_length=500)

    @field_validator("note")
    @classmethod
    def clean_note(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)


class CancelSessionRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("reason")
    @classmethod
    def clean_reason(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)


class RejectSessionRequest(CancelSessionRequest):
    pass


class CheckConflictRequest(StrictRequestModel):
    scheduled_at: datetime


class ConflictCheckResponse(StrictModel):
    student_conflict: bool
    tutor_conflict: bool
    has_conflict: bool


class SessionResponse(OrmResponseModel):
    id: str
    student_id: str
    tutor_id: str
    subject_id: str
    scheduled_at: datetime
    ends_at: datetime
    duration_min: int
    status: SessionStatus
    cancel_reason: Optional[str] = None

    proposed_at: Optional[datetime] = None
    proposed_end_at: Optional[datetime] = None
    proposed_note: Optional[str] = None
    proposal_status: Optional[ProposalStatus] = None
    proposed_by_user_id: Optional[str] = None

    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    rescheduled_at: Optional[datetime] = None
    calendar_sequence: int = 0


class SessionListResponse(StrictModel):
    items: List[SessionResponse]
    total: int
