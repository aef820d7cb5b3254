# backend/tutorlink/core/exceptions.py
"""
Domain-specific exceptions for the TutorLink session engine.

Every failure a core operation can report is one of these, carrying a
stable ``code`` so that callers (and the HTTP layer) can branch on the
kind of failure rather than on message text.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationException(DomainException):
    """Raised when request input fails business validation."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code or "VALIDATION", details)


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Forbidden", code: Optional[str] = None) -> None:
        super().__init__(message, code or "FORBIDDEN")


class NotFoundException(DomainException):
    """Raised when a requested resource is not found (or not visible to the caller)."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(
        self,
        message: str = "Not found",
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code or "NOT_FOUND", details)


class ConflictException(DomainException):
    """
    Raised when a party already has an active session overlapping the range.

    ``code`` is ``STUDENT_CONFLICT`` or ``TUTOR_CONFLICT`` and tells which
    side of the session is busy.
    """

    status_code = status.HTTP_409_CONFLICT

    STUDENT = "STUDENT_CONFLICT"
    TUTOR = "TUTOR_CONFLICT"

    @property
    def scope(self) -> str:
        return "student" if self.code == self.STUDENT else "tutor"


class RaceConflictException(ConflictException):
    """The chosen slot was taken between planning and committing a booking."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message or "That slot was just taken. Please pick another time.",
            code="SLOT_TAKEN",
            details=details or {},
        )


class NotEligibleException(DomainException):
    """
    Raised when no tutor can take a session at the requested time.

    ``NO_TUTOR`` is used while booking; ``NOT_AVAILABLE`` when a requested
    or proposed time falls outside the tutor's declared availability.
    """

    status_code = status.HTTP_409_CONFLICT

    NO_TUTOR = "NO_TUTOR"
    NOT_AVAILABLE = "NOT_AVAILABLE"


class StateException(DomainException):
    """Raised when a lifecycle transition is not allowed from the current state."""

    status_code = status.HTTP_409_CONFLICT

    WRONG_STATUS = "WRONG_STATUS"
    TOO_EARLY = "TOO_EARLY"
    NO_PROPOSAL = "NO_PROPOSAL"

    @property
    def reason(self) -> str:
        return self.code


class ServiceException(DomainException):
    """An operation failed for reasons outside the caller's control (storage, I/O)."""


class RepositoryException(Exception):
    """A query or write in the repository layer failed."""
