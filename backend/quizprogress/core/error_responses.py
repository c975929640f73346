"""
Standardized error response messages and builders.

This module provides consistent error messages and HTTPException builders
for the entire API, keeping user-facing messages separate from log messages.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Include relevant IDs in parentheses when helpful for debugging: "(ID: 123)"
- Use "Please try again later." for transient server errors

Usage:
    from quizprogress.core.error_responses import ErrorMessages, raise_not_found

    if not learner:
        raise_not_found(ErrorMessages.LEARNER_NOT_FOUND)
"""

from typing import NoReturn, Optional

from fastapi import HTTPException, status


class ErrorMessages:
    """Centralized error message constants and templates.

    Naming Convention:
    - Constants: SCREAMING_SNAKE_CASE for static messages
    - Methods: snake_case for templates that accept parameters
    """

    # ==========================================================================
    # Authentication Errors (401)
    # ==========================================================================
    INVALID_TOKEN = "Invalid authentication token."
    INVALID_TOKEN_PAYLOAD = "Invalid token payload."
    LEARNER_IDENTITY_REQUIRED = (
        "Learner identity is required. "
        "Provide a user identifier or a bearer token."
    )
    LEARNER_NOT_FOUND_AUTH = "Learner not found."

    # ==========================================================================
    # Not Found Errors (404)
    # ==========================================================================
    LEARNER_NOT_FOUND = "Learner not found."

    # ==========================================================================
    # Bad Request Errors (400)
    # ==========================================================================
    EMPTY_ANSWERS = "Answers cannot be empty."
    UNIT_ID_REQUIRED = "unitId is required for unit quizzes."
    UNIT_QUIZ_KIND_REQUIRED = "unitQuizKind is required for unit quizzes."
    INVALID_APTITUDE_SCORES = "Invalid intelligence scores."
    NON_FINITE_APTITUDE_SCORES = "Intelligence scores must be finite numbers."

    # ==========================================================================
    # Server Errors (500)
    # ==========================================================================
    SUBMISSION_FAILED = "Failed to save quiz result. Please try again later."

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def invalid_quiz_type(quiz_type: object) -> str:
        """Message for a quiz type outside the supported enumeration."""
        return f"Invalid quiz type: {quiz_type}."

    @staticmethod
    def quiz_already_completed(quiz_type: str) -> str:
        """Message for a write-once quiz that the learner already took."""
        return f"The {quiz_type} quiz has already been completed."

    @staticmethod
    def unit_already_completed(unit_id: str) -> str:
        """Message for a full unit quiz on an already completed unit."""
        return f"Unit {unit_id} has already been completed successfully."

    @staticmethod
    def answer_key_missing(quiz_type: str, unit_id: Optional[str] = None) -> str:
        """Message when no answer key is configured for a knowledge quiz."""
        if unit_id is not None:
            return f"No correct answers configured for unit: {unit_id}."
        return f"No correct answers configured for quiz type: {quiz_type}."

    @staticmethod
    def unknown_aptitude_categories(categories: set) -> str:
        """Message when aptitude scores name undeclared categories."""
        names = ", ".join(sorted(categories))
        return f"Unknown intelligence categories: {names}."

    @staticmethod
    def progress_update_failed(result_id: int) -> str:
        """Message when a result was saved but learner progress was not."""
        return (
            f"Quiz result was saved (ID: {result_id}) but learner progress "
            "could not be updated. Please contact support."
        )


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_bad_request(detail: str) -> NoReturn:
    """Raise a 400 Bad Request exception.

    Use for client errors where the request is malformed or invalid, and for
    business rejections such as an already completed quiz.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 400 Bad Request
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_unauthorized(
    detail: str,
    include_www_authenticate: bool = True,
) -> NoReturn:
    """Raise a 401 Unauthorized exception.

    Use when the learner identity cannot be resolved.

    Args:
        detail: User-facing error message
        include_www_authenticate: Whether to include WWW-Authenticate header

    Raises:
        HTTPException: 401 Unauthorized
    """
    headers = {"WWW-Authenticate": "Bearer"} if include_www_authenticate else None
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=headers,
    )


def raise_not_found(detail: str) -> NoReturn:
    """Raise a 404 Not Found exception.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 404 Not Found
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )


def raise_server_error(
    detail: str,
    error_id: Optional[str] = None,
) -> NoReturn:
    """Raise a 500 Internal Server Error exception.

    Always use user-friendly messages; log technical details separately.

    Args:
        detail: User-facing error message (should be generic and friendly)
        error_id: Optional error tracking ID to include in response

    Raises:
        HTTPException: 500 Internal Server Error
    """
    if error_id:
        detail = f"{detail} (Error ID: {error_id})"

    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )
