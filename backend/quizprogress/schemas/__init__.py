"""
Pydantic schemas for request/response validation.
"""
from .quiz import (
    CamelModel,
    QuizSubmissionRequest,
    QuizSubmissionResponse,
    QuizResultResponse,
    QuizResultListResponse,
    CompletionCheckResponse,
)
from .learners import (
    LearnerProgressResponse,
    LearnerProfileResponse,
)

__all__ = [
    "CamelModel",
    "QuizSubmissionRequest",
    "QuizSubmissionResponse",
    "QuizResultResponse",
    "QuizResultListResponse",
    "CompletionCheckResponse",
    "LearnerProgressResponse",
    "LearnerProfileResponse",
]
