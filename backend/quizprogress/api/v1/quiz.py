"""
Quiz submission and completion endpoints.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quizprogress.api.deps import get_submission_engine
from quizprogress.core.auth import get_token_learner_ref, resolve_learner_ref
from quizprogress.core.completion_gate import describe_completion
from quizprogress.core.db_error_handling import DatabaseOperationError
from quizprogress.core.error_responses import (
    ErrorMessages,
    raise_bad_request,
    raise_not_found,
    raise_server_error,
    raise_unauthorized,
)
from quizprogress.core.exceptions import InvalidSubmissionError, LearnerNotFoundError
from quizprogress.core.queries import get_learner_by_external_id, list_quiz_results
from quizprogress.core.submission import (
    QuizSubmission,
    SubmissionEngine,
    SubmissionPartialFailure,
    SubmissionRejected,
)
from quizprogress.models import QuizType, get_db
from quizprogress.schemas.quiz import (
    CompletionCheckResponse,
    QuizResultListResponse,
    QuizResultResponse,
    QuizSubmissionRequest,
    QuizSubmissionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_RESULTS_LIMIT = 50
MAX_RESULTS_LIMIT = 200


def _parse_quiz_type(value: str) -> QuizType:
    try:
        return QuizType(value)
    except ValueError:
        raise_bad_request(ErrorMessages.invalid_quiz_type(value))


@router.post(
    "/submit",
    response_model=QuizSubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_quiz(
    body: QuizSubmissionRequest,
    token_learner_ref: Optional[str] = Depends(get_token_learner_ref),
    engine: SubmissionEngine = Depends(get_submission_engine),
):
    """
    Submit a quiz for scoring.

    Scores the answers, records the result and applies it to the learner's
    progress: the aptitude quiz assigns the learner path, the pre- and
    post-assessments store their percentage, and a passed full unit quiz
    completes its unit.

    An aptitude quiz sent with only a positive `score` and no category
    `scores` is accepted and completes the aptitude quiz, but assigns no
    path. Such a learner keeps `assignedPath: null` for good, because the
    aptitude quiz cannot be retaken. Clients that need a path must send the
    category scores. Category scores and the total must be finite numbers.

    Args:
        body: Quiz submission
        token_learner_ref: Learner reference from the bearer token, if any
        engine: Submission engine bound to the request's session

    Returns:
        The created quiz result with any progress change

    Raises:
        HTTPException: 400 for invalid input or an already completed quiz,
            401 if the learner cannot be resolved, 500 if the result or the
            progress update could not be saved
    """
    learner_ref = resolve_learner_ref(body.user, token_learner_ref)

    submission = QuizSubmission(
        quiz_type=body.quiz_type,
        learner_ref=learner_ref,
        answers=body.answers,
        category_scores=body.scores,
        total_score=body.score,
        unit_id=body.unit_id,
        unit_quiz_kind=body.unit_quiz_kind,
    )

    try:
        outcome = await engine.submit(submission)
    except InvalidSubmissionError as e:
        raise_bad_request(e.message)
    except LearnerNotFoundError:
        raise_unauthorized(ErrorMessages.LEARNER_NOT_FOUND_AUTH)
    except DatabaseOperationError:
        raise_server_error(ErrorMessages.SUBMISSION_FAILED)

    if isinstance(outcome, SubmissionRejected):
        raise_bad_request(outcome.reason)

    if isinstance(outcome, SubmissionPartialFailure):
        raise_server_error(ErrorMessages.progress_update_failed(outcome.result_id))

    result = outcome.result
    progress = outcome.progress
    response = QuizSubmissionResponse(
        id=result.id,
        quiz_type=result.quiz_type.value,
        score=result.score,
        percentage=result.percentage,
        total_questions=result.total_questions,
        created_at=result.created_at,
    )
    if result.quiz_type == QuizType.INTELLIGENCE:
        response.scores = result.scores
        response.assigned_path = progress.assigned_path
    elif result.quiz_type == QuizType.UNIT:
        response.unit_id = result.unit_id
        response.unit_quiz_kind = result.unit_quiz_kind.value
        response.passed = result.passed
        response.completed_units_count = progress.completed_units_count

    return response


@router.get("/check-completion", response_model=CompletionCheckResponse)
async def check_completion(
    quiz_type: str = Query(..., alias="quizType", description="Quiz category"),
    user: Optional[str] = Query(None, description="Learner external id"),
    user_id: Optional[str] = Query(
        None, alias="userId", description="Alternate name for `user`"
    ),
    unit_id: Optional[str] = Query(
        None, alias="unitId", description="Unit id (unit quizzes)"
    ),
    token_learner_ref: Optional[str] = Depends(get_token_learner_ref),
    db: AsyncSession = Depends(get_db),
):
    """
    Report whether a learner already completed a quiz.

    An unknown learner has completed nothing. For unit quizzes completion
    means the unit is in the learner's completed units.

    Returns:
        Completion flag and the stored score, if any
    """
    learner_ref = resolve_learner_ref(user or user_id, token_learner_ref)
    parsed_type = _parse_quiz_type(quiz_type)
    if parsed_type == QuizType.UNIT and not unit_id:
        raise_bad_request(ErrorMessages.UNIT_ID_REQUIRED)

    learner = await get_learner_by_external_id(db, learner_ref)
    if learner is None:
        return CompletionCheckResponse(completed=False, score=None)

    completion = describe_completion(learner, parsed_type, unit_id=unit_id)
    return CompletionCheckResponse(
        completed=completion.completed, score=completion.score
    )


@router.get("/results", response_model=QuizResultListResponse)
async def get_quiz_results(
    user: Optional[str] = Query(None, description="Learner external id"),
    quiz_type: Optional[str] = Query(
        None, alias="quizType", description="Restrict to one quiz category"
    ),
    limit: int = Query(
        default=DEFAULT_RESULTS_LIMIT,
        ge=1,
        le=MAX_RESULTS_LIMIT,
        description="Maximum number of results to return",
    ),
    token_learner_ref: Optional[str] = Depends(get_token_learner_ref),
    db: AsyncSession = Depends(get_db),
):
    """
    Get a learner's quiz result history, newest first.

    Raises:
        HTTPException: 400 for an unknown quiz type, 401 without a learner
            identity, 404 for an unknown learner
    """
    learner_ref = resolve_learner_ref(user, token_learner_ref)
    parsed_type = _parse_quiz_type(quiz_type) if quiz_type else None

    learner = await get_learner_by_external_id(db, learner_ref)
    if learner is None:
        raise_not_found(ErrorMessages.LEARNER_NOT_FOUND)

    results = await list_quiz_results(
        db, learner.id, quiz_type=parsed_type, limit=limit
    )
    return QuizResultListResponse(
        results=[QuizResultResponse.model_validate(r) for r in results],
        total_count=len(results),
    )
