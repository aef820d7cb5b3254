# backend/tutorlink/repositories/subject_repository.py
"""Subject lookups."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models.subject import Subject
from .base_repository import BaseRepository


class SubjectRepository(BaseRepository[Subject]):
    def __init__(self, db: Session):
        super().__init__(db, Subject)

    def get_by_code(self, code: str) -> Optional[Subject]:
        return self._build_query().filter(Subject.code == code).first()
