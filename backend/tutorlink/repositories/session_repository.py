# backend/tutorlink/repositories/session_repository.py
"""
Session Repository for TutorLink

Queries over tutoring sessions: overlap lookups used by conflict
detection, load counts used by tutor selection, participant listings,
and the candidate scans run by the maintenance tasks.

Every overlap query uses the half-open test
``scheduled_at < end AND ends_at > start`` restricted to active statuses.
"""

from collections import defaultdict
from datetime import datetime
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.enums import SessionStatus
from ..core.exceptions import RepositoryException
from ..models.tutoring_session import TutoringSession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = [status.value for status in SessionStatus.active()]


class SessionRepository(BaseRepository[TutoringSession]):
    def __init__(self, db: Session):
        super().__init__(db, TutoringSession)

    def _active_overlapping(
        self,
        start: datetime,
        end: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> Query:
        query = self.db.query(TutoringSession).filter(
            TutoringSession.status.in_(ACTIVE_STATUSES),
            TutoringSession.scheduled_at < end,
            TutoringSession.ends_at > start,
        )
        if exclude_session_id:
            query = query.filter(TutoringSession.id != exclude_session_id)
        return query

    def get_tutor_conflicts(
        self,
        tutor_id: str,
        start: datetime,
        end: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> List[TutoringSession]:
        """Active sessions of the tutor overlapping ``[start, end)``."""
        try:
            return (
                self._active_overlapping(start, end, exclude_session_id)
                .filter(TutoringSession.tutor_id == tutor_id)
                .order_by(TutoringSession.scheduled_at)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting tutor conflicts: {str(e)}")
            raise RepositoryException(f"Failed to get tutor conflicts: {str(e)}")

    def get_student_conflicts(
        self,
        student_id: str,
        start: datetime,
        end: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> List[TutoringSession]:
        """Active sessions of the student overlapping ``[start, end)``."""
        try:
            return (
                self._active_overlapping(start, end, exclude_session_id)
                .filter(TutoringSession.student_id == student_id)
                .order_by(TutoringSession.scheduled_at)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting student conflicts: {str(e)}")
            raise RepositoryException(f"Failed to get student conflicts: {str(e)}")

    def get_active_sessions_for_tutors(
        self,
        tutor_ids: Iterable[str],
        start: datetime,
        end: datetime,
    ) -> Dict[str, List[TutoringSession]]:
        """Active sessions overlapping ``[start, end)``, grouped by tutor."""
        ids = list(tutor_ids)
        grouped: Dict[str, List[TutoringSession]] = defaultdict(list)
        if not ids:
            return grouped
        try:
            rows = (
                self._active_overlapping(start, end)
                .filter(TutoringSession.tutor_id.in_(ids))
                .order_by(TutoringSession.scheduled_at)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading tutor sessions: {str(e)}")
            raise RepositoryException(f"Failed to load tutor sessions: {str(e)}")
        for row in rows:
            grouped[row.tutor_id].append(row)
        return grouped

    def count_active_starting_between(
        self,
        tutor_ids: Iterable[str],
        start: datetime,
        end: datetime,
    ) -> Dict[str, int]:
        """Per tutor, the number of active sessions with ``start <= scheduled_at < end``."""
        ids = list(tutor_ids)
        counts = {tutor_id: 0 for tutor_id in ids}
        if not ids:
            return counts
        try:
            rows = (
                self.db.query(TutoringSession.tutor_id, func.count(TutoringSession.id))
                .filter(
                    TutoringSession.tutor_id.in_(ids),
                    TutoringSession.status.in_(ACTIVE_STATUSES),
                    TutoringSession.scheduled_at >= start,
                    TutoringSession.scheduled_at < end,
                )
                .group_by(TutoringSession.tutor_id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting tutor load: {str(e)}")
            raise RepositoryException(f"Failed to count tutor load: {str(e)}")
        for tutor_id, total in rows:
            counts[tutor_id] = int(total)
        return counts

    def list_for_user(
        self,
        user_id: str,
        status: Optional[SessionStatus] = None,
        limit: int = 100,
    ) -> List[TutoringSession]:
        """Sessions where the user is student or tutor, soonest first."""
        query = self.db.query(TutoringSession).filter(
            or_(TutoringSession.student_id == user_id, TutoringSession.tutor_id == user_id)
        )
        if status is not None:
            query = query.filter(TutoringSession.status == status.value)
        return self._execute_query(query.order_by(TutoringSession.scheduled_at).limit(limit))

    def get_due_for_auto_complete(self, cutoff: datetime, limit: int) -> List[TutoringSession]:
        """ACCEPTED sessions that ended at or before ``cutoff``, oldest first."""
        query = (
            self.db.query(TutoringSession)
            .filter(
                TutoringSession.status == SessionStatus.ACCEPTED.value,
                TutoringSession.ends_at <= cutoff,
            )
            .order_by(TutoringSession.ends_at)
            .limit(limit)
        )
        return self._execute_query(query)

    def mark_completed_if_accepted(self, session_id: str, now: datetime) -> bool:
        """
        Complete a session only if it is still ACCEPTED.

        Returns:
            True if this call performed the transition
        """
        try:
            result = self.db.execute(
                update(TutoringSession)
                .where(
                    TutoringSession.id == session_id,
                    TutoringSession.status == SessionStatus.ACCEPTED.value,
                )
                .values(status=SessionStatus.COMPLETED.value, completed_at=now)
                .execution_options(synchronize_session="fetch")
            )
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error completing session {session_id}: {str(e)}")
            raise RepositoryException(f"Failed to complete session: {str(e)}")

    def get_accepted_starting_between(
        self, start: datetime, end: datetime
    ) -> List[TutoringSession]:
        """ACCEPTED sessions with ``start <= scheduled_at < end``."""
        query = (
            self.db.query(TutoringSession)
            .filter(
                TutoringSession.status == SessionStatus.ACCEPTED.value,
                TutoringSession.scheduled_at >= start,
                TutoringSession.scheduled_at < end,
            )
            .order_by(TutoringSession.scheduled_at)
        )
        return self._execute_query(query)
