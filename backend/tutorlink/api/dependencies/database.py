# backend/tutorlink/api/dependencies/database.py
"""
Request-scoped database session.

Routes depend on this wrapper rather than on ``tutorlink.database``
directly, so tests can swap it through ``app.dependency_overrides``.
"""

from typing import Generator

from sqlalchemy.orm import Session

from ...database import get_db as _request_session


def get_db() -> Generator[Session, None, None]:
    yield from _request_session()
