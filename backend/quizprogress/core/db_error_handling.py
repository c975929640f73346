"""
Database error handling utilities.

This module centralizes the pattern of:
1. Rolling back the database session on error
2. Logging the error with context
3. Raising DatabaseOperationError for the caller to translate

The submission engine runs outside of any HTTP context, so failures are
surfaced as DatabaseOperationError rather than HTTPException; the API layer
maps them to 500 responses.

Usage:
    from quizprogress.core.db_error_handling import handle_db_error

    async with handle_db_error(db, "save quiz result"):
        db.add(result)
        await db.commit()
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession


logger = logging.getLogger(__name__)


class DatabaseOperationError(Exception):
    """Exception raised when a database operation fails.

    Wraps database errors with context about the operation that failed.

    Attributes:
        operation_name: Human-readable name of the operation that failed
        original_error: The underlying exception that caused the failure
        message: The formatted error message
    """

    def __init__(
        self,
        operation_name: str,
        original_error: Exception,
        message: Optional[str] = None,
    ):
        self.operation_name = operation_name
        self.original_error = original_error
        self.message = message or f"Failed to {operation_name}: {str(original_error)}"
        super().__init__(self.message)


@asynccontextmanager
async def handle_db_error(
    db: AsyncSession,
    operation_name: str,
    *,
    log_level: int = logging.ERROR,
) -> AsyncGenerator[None, None]:
    """Async context manager for handling database errors consistently.

    On SQLAlchemyError the session is rolled back, the error is logged and a
    DatabaseOperationError is raised from it. Other exceptions roll the
    session back and propagate unchanged.

    Args:
        db: The async SQLAlchemy session to rollback on error.
        operation_name: Human-readable name of the operation for error messages
            and logging (e.g., "save quiz result").
        log_level: Logging level for error messages. Defaults to logging.ERROR.

    Raises:
        DatabaseOperationError: On any SQLAlchemyError, with the session rolled back.
    """
    try:
        yield
    except SQLAlchemyError as e:
        await db.rollback()
        logger.log(
            log_level,
            f"Database error during {operation_name}: {e}",
            exc_info=True,
        )
        raise DatabaseOperationError(operation_name, e) from e
    except Exception:
        await db.rollback()
        raise
