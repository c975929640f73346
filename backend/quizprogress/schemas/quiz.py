"""
Pydantic schemas for quiz submission endpoints.

Quiz clients speak camelCase; fields are declared in snake_case with camelCase
aliases and accept either spelling on input.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from quizprogress.core.datetime_utils import ensure_timezone_aware


class CamelModel(BaseModel):
    """Base schema serialized with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class QuizSubmissionRequest(CamelModel):
    """
    Schema for submitting a quiz.

    The body may be sent as-is or wrapped in a top-level "data" object.
    quizType and unitQuizKind are plain strings here; unknown values are
    reported as 400 by the submission engine.
    """

    quiz_type: str = Field(
        ..., description="Quiz category: intelligence, initial, final or unit"
    )
    user: Optional[str] = Field(
        None,
        description="Learner external id. Falls back to the bearer token's learner_id",
    )
    answers: Dict[str, str] = Field(
        default_factory=dict, description="Question id to submitted answer"
    )
    scores: Optional[Dict[str, float]] = Field(
        None, description="Aptitude category scores (intelligence quiz only)"
    )
    score: Optional[float] = Field(
        None,
        description="Aptitude total, used only when no category scores are sent",
    )
    unit_id: Optional[str] = Field(None, description="Unit id (unit quizzes only)")
    unit_quiz_kind: Optional[str] = Field(
        None, description="Unit quiz kind: small, full or remedial"
    )

    @model_validator(mode="before")
    @classmethod
    def unwrap_data_envelope(cls, values: Any) -> Any:
        """Accept {"data": {...}} bodies sent by older clients."""
        if (
            isinstance(values, dict)
            and isinstance(values.get("data"), dict)
            and "quizType" not in values
            and "quiz_type" not in values
        ):
            return values["data"]
        return values


class QuizSubmissionResponse(CamelModel):
    """Schema for an accepted quiz submission."""

    id: int = Field(..., description="Quiz result ID")
    quiz_type: str = Field(..., description="Quiz category")
    score: float = Field(
        ..., description="Correct answer count, or the aptitude total"
    )
    percentage: Optional[int] = Field(
        None, description="Percentage correct (knowledge quizzes)"
    )
    total_questions: Optional[int] = Field(
        None, description="Number of answered questions (knowledge quizzes)"
    )
    scores: Optional[Dict[str, float]] = Field(
        None, description="Aptitude category scores"
    )
    assigned_path: Optional[str] = Field(
        None, description="Path assigned from the aptitude result"
    )
    unit_id: Optional[str] = Field(None, description="Unit id (unit quizzes)")
    unit_quiz_kind: Optional[str] = Field(
        None, description="Unit quiz kind (unit quizzes)"
    )
    passed: Optional[bool] = Field(
        None, description="Whether the unit quiz attempt passed"
    )
    completed_units_count: Optional[int] = Field(
        None, description="Completed unit count after this submission (unit quizzes)"
    )
    created_at: datetime = Field(..., description="Submission timestamp")


class QuizResultResponse(CamelModel):
    """Schema for one quiz result in a learner's history."""

    id: int = Field(..., description="Quiz result ID")
    quiz_type: str = Field(..., description="Quiz category")
    score: float = Field(..., description="Correct answer count or aptitude total")
    percentage: Optional[int] = None
    total_questions: Optional[int] = None
    scores: Optional[Dict[str, float]] = None
    unit_id: Optional[str] = None
    unit_quiz_kind: Optional[str] = None
    passed: Optional[bool] = None
    completed: bool = True
    created_at: datetime

    @model_validator(mode="before")
    @classmethod
    def enum_values(cls, values: Any) -> Any:
        """Expose enum columns by their wire value."""
        if isinstance(values, dict):
            return values
        return {
            "id": values.id,
            "quiz_type": values.quiz_type.value,
            "score": values.score,
            "percentage": values.percentage,
            "total_questions": values.total_questions,
            "scores": values.scores,
            "unit_id": values.unit_id,
            "unit_quiz_kind": (
                values.unit_quiz_kind.value if values.unit_quiz_kind else None
            ),
            "passed": values.passed,
            "completed": values.completed,
            "created_at": ensure_timezone_aware(values.created_at),
        }


class QuizResultListResponse(CamelModel):
    """Schema for a learner's quiz result history."""

    results: List[QuizResultResponse] = Field(
        ..., description="Quiz results, newest first"
    )
    total_count: int = Field(..., description="Number of results returned")


class CompletionCheckResponse(CamelModel):
    """Schema for the check-completion endpoint."""

    completed: bool = Field(..., description="Whether the quiz is completed")
    score: Optional[Any] = Field(
        None,
        description="Stored score: aptitude category scores or assessment percentage",
    )
