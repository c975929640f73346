"""
Pydantic schemas for learner progress endpoints.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from quizprogress.schemas.quiz import CamelModel, QuizResultResponse


class LearnerProgressResponse(CamelModel):
    """Schema for the learner progress projection."""

    assigned_path: Optional[str] = Field(
        None, description="Path assigned from the aptitude quiz"
    )
    completed_units_count: int = Field(
        0, description="Number of completed units, capped at MAX_UNIT_COUNT"
    )
    completed_units: List[str] = Field(
        default_factory=list, description="Completed unit ids"
    )


class LearnerProfileResponse(LearnerProgressResponse):
    """Schema for the authenticated learner's profile and quiz history."""

    id: int = Field(..., description="Learner ID")
    external_id: str = Field(..., description="Learner external id (`user`)")
    username: Optional[str] = None
    email: Optional[str] = None
    aptitude_scores: Optional[Dict[str, float]] = Field(
        None, description="Aptitude category scores"
    )
    initial_score: Optional[int] = Field(
        None, description="Pre-assessment percentage"
    )
    final_score: Optional[int] = Field(None, description="Post-assessment percentage")
    created_at: datetime
    updated_at: datetime
    quiz_results: List[QuizResultResponse] = Field(
        default_factory=list, description="Quiz result history, newest first"
    )
