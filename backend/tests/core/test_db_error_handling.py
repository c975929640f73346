"""
Tests for the db_error_handling module.
"""
import logging
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from quizprogress.core.db_error_handling import DatabaseOperationError, handle_db_error


def create_mock_db():
    """Create an AsyncMock that passes isinstance(mock, AsyncSession) check."""
    return AsyncMock(spec=AsyncSession)


class TestDatabaseOperationError:
    """Tests for the DatabaseOperationError exception class."""

    def test_basic_initialization(self):
        original = ValueError("original error")
        error = DatabaseOperationError(
            operation_name="save quiz result",
            original_error=original,
        )

        assert error.operation_name == "save quiz result"
        assert error.original_error is original
        assert "Failed to save quiz result" in error.message
        assert "original error" in error.message

    def test_custom_message(self):
        error = DatabaseOperationError(
            operation_name="load learner",
            original_error=ValueError("db error"),
            message="Custom error message",
        )

        assert str(error) == "Custom error message"


class TestHandleDbError:
    """Tests for the handle_db_error async context manager."""

    async def test_success_does_not_roll_back(self):
        db = create_mock_db()

        async with handle_db_error(db, "save quiz result"):
            pass

        db.rollback.assert_not_called()

    async def test_sqlalchemy_error_is_wrapped(self):
        db = create_mock_db()
        original = SQLAlchemyError("connection reset")

        with pytest.raises(DatabaseOperationError) as exc_info:
            async with handle_db_error(db, "save quiz result"):
                raise original

        db.rollback.assert_awaited_once()
        assert exc_info.value.operation_name == "save quiz result"
        assert exc_info.value.original_error is original
        assert exc_info.value.__cause__ is original

    async def test_integrity_error_is_wrapped(self):
        db = create_mock_db()

        with pytest.raises(DatabaseOperationError):
            async with handle_db_error(db, "save quiz result"):
                raise IntegrityError("INSERT", {}, Exception("unique violation"))

        db.rollback.assert_awaited_once()

    async def test_other_exceptions_roll_back_and_propagate(self):
        db = create_mock_db()

        with pytest.raises(ValueError, match="not a db error"):
            async with handle_db_error(db, "save quiz result"):
                raise ValueError("not a db error")

        db.rollback.assert_awaited_once()

    async def test_custom_log_level(self, monkeypatch):
        db = create_mock_db()
        calls = []

        def record(level, msg, *args, **kwargs):
            calls.append((level, msg))

        monkeypatch.setattr(
            "quizprogress.core.db_error_handling.logger.log", record
        )

        with pytest.raises(DatabaseOperationError):
            async with handle_db_error(db, "load learner", log_level=logging.WARNING):
                raise SQLAlchemyError("timeout")

        assert calls == [
            (logging.WARNING, "Database error during load learner: timeout")
        ]
