# backend/tutorlink/repositories/base_repository.py
"""
Shared data access for TutorLink repositories.

Repositories own the queries; services own the transaction. Nothing in
this layer commits or rolls back. Driver errors surface as
RepositoryException so services can tell storage failures apart from
domain failures.
"""

import logging
from typing import Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    """Lookups and inserts keyed on a model's ULID primary key."""

    def __init__(self, db: Session, model: Type[ModelT]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str) -> Optional[ModelT]:
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            self.logger.error(f"Lookup of {self.model.__name__} {id} failed: {str(e)}")
            raise RepositoryException(f"Could not load {self.model.__name__} {id}") from e

    def get_for_update(self, id: str) -> Optional[ModelT]:
        """Load a row under ``SELECT ... FOR UPDATE``; the lock lasts until commit."""
        query = self._build_query().filter(self.model.id == id).with_for_update()
        try:
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Locking {self.model.__name__} {id} failed: {str(e)}")
            raise RepositoryException(f"Could not lock {self.model.__name__} {id}") from e

    def create(self, **fields) -> ModelT:
        """Add a row and flush it so defaults such as the id are populated."""
        entity = self.model(**fields)
        try:
            self.db.add(entity)
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Insert into {self.model.__name__} failed: {str(e)}")
            raise RepositoryException(f"Could not create {self.model.__name__}") from e
        return entity

    def exists(self, **criteria) -> bool:
        try:
            return self._build_query().filter_by(**criteria).first() is not None
        except SQLAlchemyError as e:
            self.logger.error(f"Existence check on {self.model.__name__} failed: {str(e)}")
            raise RepositoryException(f"Could not query {self.model.__name__}") from e

    def _build_query(self) -> Query:
        return self.db.query(self.model)

    def _execute_query(self, query: Query) -> List[ModelT]:
        try:
            return query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"{self.model.__name__} query failed: {str(e)}")
            raise RepositoryException(f"Could not query {self.model.__name__}") from e
