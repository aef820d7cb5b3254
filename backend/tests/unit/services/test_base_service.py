# backend/tests/unit/services/test_base_service.py
"""
Unit tests for BaseService.transaction error mapping.
"""

from datetime import datetime
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from tutorlink.core.clock import FixedClock
from tutorlink.core.exceptions import (
    ConflictException,
    RepositoryException,
    ServiceException,
)
from tutorlink.services.base import BaseService


@pytest.fixture
def service():
    return BaseService(Mock(spec=Session), clock=FixedClock(datetime(2025, 1, 6, 8, 0)))


class TestTransaction:
    def test_commits_on_success(self, service):
        with service.transaction() as db:
            db.add("row")

        service.db.commit.assert_called_once()
        service.db.rollback.assert_not_called()

    def test_repository_error_becomes_service_error(self, service):
        with pytest.raises(ServiceException) as exc_info:
            with service.transaction():
                raise RepositoryException("Failed to create TutoringSession: disk I/O error")

        assert exc_info.value.status_code == 500
        assert isinstance(exc_info.value.__cause__, RepositoryException)
        service.db.rollback.assert_called_once()
        service.db.commit.assert_not_called()

    def test_driver_error_becomes_service_error(self, service):
        with pytest.raises(ServiceException):
            with service.transaction():
                raise OperationalError("INSERT", {}, Exception("database is locked"))

        service.db.rollback.assert_called_once()

    def test_domain_errors_pass_through(self, service):
        with pytest.raises(ConflictException):
            with service.transaction():
                raise ConflictException("busy", code=ConflictException.TUTOR)

        service.db.rollback.assert_called_once()
