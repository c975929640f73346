"""
Learner progress endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from quizprogress.core.auth import (
    get_current_learner,
    get_token_learner_ref,
    resolve_learner_ref,
)
from quizprogress.core.datetime_utils import ensure_timezone_aware
from quizprogress.core.error_responses import ErrorMessages, raise_not_found
from quizprogress.core.queries import get_learner_by_external_id, list_quiz_results
from quizprogress.models import Learner, get_db
from quizprogress.schemas.learners import (
    LearnerProfileResponse,
    LearnerProgressResponse,
)
from quizprogress.schemas.quiz import QuizResultResponse

router = APIRouter()


@router.get("/progress", response_model=LearnerProgressResponse)
async def get_learner_progress(
    user: Optional[str] = Query(None, description="Learner external id"),
    token_learner_ref: Optional[str] = Depends(get_token_learner_ref),
    db: AsyncSession = Depends(get_db),
):
    """
    Get a learner's assigned path and unit completion progress.

    Raises:
        HTTPException: 401 without a learner identity, 404 for an unknown
            learner
    """
    learner_ref = resolve_learner_ref(user, token_learner_ref)
    learner = await get_learner_by_external_id(db, learner_ref)
    if learner is None:
        raise_not_found(ErrorMessages.LEARNER_NOT_FOUND)

    return LearnerProgressResponse(
        assigned_path=learner.assigned_path,
        completed_units_count=learner.completed_units_count or 0,
        completed_units=list(learner.completed_units or []),
    )


@router.get("/me", response_model=LearnerProfileResponse)
async def get_my_profile(
    current_learner: Learner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_db),
):
    """
    Get the authenticated learner's profile, progress and quiz history.

    Progress fields come from the learner record and history from the quiz
    results table; the two are reported side by side and never merged.
    """
    results = await list_quiz_results(db, current_learner.id)

    return LearnerProfileResponse(
        id=current_learner.id,
        external_id=current_learner.external_id,
        username=current_learner.username,
        email=current_learner.email,
        aptitude_scores=current_learner.aptitude_scores,
        assigned_path=current_learner.assigned_path,
        initial_score=current_learner.initial_score,
        final_score=current_learner.final_score,
        completed_units=list(current_learner.completed_units or []),
        completed_units_count=current_learner.completed_units_count or 0,
        created_at=ensure_timezone_aware(current_learner.created_at),
        updated_at=ensure_timezone_aware(current_learner.updated_at),
        quiz_results=[QuizResultResponse.model_validate(r) for r in results],
    )
