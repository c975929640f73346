"""
Submission engine: the state machine behind POST /quiz/submit.

A submission moves through these steps:

1. Shape validation, synchronous and without storage access.
2. The learner's critical section is entered: the in-process learner lock is
   taken and the learner row is loaded with SELECT ... FOR UPDATE.
3. The completion gate decides; a rejection ends the submission with no
   writes.
4. Scoring: answer-key comparison for knowledge quizzes, category total and
   path assignment for the aptitude quiz.
5. One QuizResult row is inserted and flushed.
6. The progress aggregator runs inside a SAVEPOINT. If it fails, the
   savepoint is rolled back, the result is still committed and a
   SubmissionPartialFailure carrying the result id is returned.
7. Commit.

The engine receives its session, answer keys and settings explicitly so it
can be driven without a running web application.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from quizprogress.core.analytics import AnalyticsTracker
from quizprogress.core.answer_keys import AnswerKeyConfig
from quizprogress.core.completion_gate import check_completion
from quizprogress.core.db_error_handling import DatabaseOperationError, handle_db_error
from quizprogress.core.error_responses import ErrorMessages
from quizprogress.core.exceptions import (
    InvalidSubmissionError,
    LearnerNotFoundError,
    ProgressUpdateError,
    StaleProgressError,
)
from quizprogress.core.locks import LearnerLockRegistry, learner_locks
from quizprogress.core.logging_config import learner_context
from quizprogress.core.progress import ProgressAggregator, ProgressUpdate
from quizprogress.core.scoring import assign_path, score_answers, total_aptitude_score
from quizprogress.models.models import Learner, QuizResult, QuizType, UnitQuizKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuizSubmission:
    """
    One inbound quiz submission.

    quiz_type and unit_quiz_kind accept either the enum or its wire value;
    unknown wire values are rejected during validation.
    """

    quiz_type: Union[QuizType, str]
    learner_ref: str
    answers: Mapping[str, str] = field(default_factory=dict)
    category_scores: Optional[Mapping[str, float]] = None
    total_score: Optional[float] = None
    unit_id: Optional[str] = None
    unit_quiz_kind: Optional[Union[UnitQuizKind, str]] = None


@dataclass(frozen=True)
class ValidatedSubmission:
    """A submission that passed shape validation."""

    quiz_type: QuizType
    learner_ref: str
    answers: Mapping[str, str]
    category_scores: Optional[Mapping[str, float]]
    total_score: Optional[float]
    unit_id: Optional[str]
    unit_quiz_kind: Optional[UnitQuizKind]
    answer_key: Optional[Mapping[str, str]]


@dataclass(frozen=True)
class SubmissionAccepted:
    """Result persisted and progress updated."""

    result: QuizResult
    progress: ProgressUpdate


@dataclass(frozen=True)
class SubmissionRejected:
    """The completion gate refused the submission. Nothing was written."""

    reason: str


@dataclass(frozen=True)
class SubmissionPartialFailure:
    """The result was persisted but the learner progress update failed."""

    result_id: int
    error: str


SubmissionOutcome = Union[
    SubmissionAccepted, SubmissionRejected, SubmissionPartialFailure
]


def _coerce_quiz_type(value: Union[QuizType, str, None]) -> QuizType:
    if isinstance(value, QuizType):
        return value
    try:
        return QuizType(value)
    except ValueError:
        raise InvalidSubmissionError(
            ErrorMessages.invalid_quiz_type(value), field="quizType"
        ) from None


def _coerce_unit_quiz_kind(
    value: Union[UnitQuizKind, str, None]
) -> Optional[UnitQuizKind]:
    if value is None or isinstance(value, UnitQuizKind):
        return value
    try:
        return UnitQuizKind(value)
    except ValueError:
        raise InvalidSubmissionError(
            f"Invalid unit quiz kind: {value}.", field="unitQuizKind"
        ) from None


def _require_finite_scores(
    category_scores: Optional[Mapping[str, float]], total_score: Optional[float]
) -> None:
    """Reject NaN and infinite aptitude values before anything is stored."""
    for value in (category_scores or {}).values():
        if not math.isfinite(value):
            raise InvalidSubmissionError(
                ErrorMessages.NON_FINITE_APTITUDE_SCORES, field="scores"
            )
    if total_score is not None and not math.isfinite(total_score):
        raise InvalidSubmissionError(
            ErrorMessages.NON_FINITE_APTITUDE_SCORES, field="score"
        )


class SubmissionEngine:
    """Scores quiz submissions and applies them to learner progress."""

    def __init__(
        self,
        db: AsyncSession,
        answer_keys: AnswerKeyConfig,
        *,
        max_unit_count: int,
        unit_pass_percentage: int,
        locks: LearnerLockRegistry = learner_locks,
        aggregator: Optional[ProgressAggregator] = None,
    ):
        self.db = db
        self.answer_keys = answer_keys
        self.unit_pass_percentage = unit_pass_percentage
        self.locks = locks
        self.aggregator = aggregator or ProgressAggregator(max_unit_count)

    def validate(self, submission: QuizSubmission) -> ValidatedSubmission:
        """
        Check the submission shape without touching storage.

        Raises:
            InvalidSubmissionError: With the offending field on the error
        """
        quiz_type = _coerce_quiz_type(submission.quiz_type)
        unit_quiz_kind = _coerce_unit_quiz_kind(submission.unit_quiz_kind)
        unit_id = submission.unit_id

        if quiz_type == QuizType.UNIT:
            if not unit_id:
                raise InvalidSubmissionError(
                    ErrorMessages.UNIT_ID_REQUIRED, field="unitId"
                )
            if unit_quiz_kind is None:
                raise InvalidSubmissionError(
                    ErrorMessages.UNIT_QUIZ_KIND_REQUIRED, field="unitQuizKind"
                )
        else:
            unit_id = None
            unit_quiz_kind = None

        if not submission.answers:
            raise InvalidSubmissionError(ErrorMessages.EMPTY_ANSWERS, field="answers")

        answer_key = None
        if quiz_type == QuizType.INTELLIGENCE:
            unknown = set(submission.category_scores or {}) - set(
                self.answer_keys.aptitude_categories
            )
            if unknown:
                raise InvalidSubmissionError(
                    ErrorMessages.unknown_aptitude_categories(unknown),
                    field="scores",
                )
            _require_finite_scores(submission.category_scores, submission.total_score)
        else:
            answer_key = self.answer_keys.key_for(quiz_type, unit_id)
            if answer_key is None:
                raise InvalidSubmissionError(
                    ErrorMessages.answer_key_missing(quiz_type.value, unit_id),
                    field="unitId" if unit_id else "quizType",
                )

        return ValidatedSubmission(
            quiz_type=quiz_type,
            learner_ref=submission.learner_ref,
            answers=dict(submission.answers),
            category_scores=submission.category_scores,
            total_score=submission.total_score,
            unit_id=unit_id,
            unit_quiz_kind=unit_quiz_kind,
            answer_key=answer_key,
        )

    async def _load_learner_for_update(self, learner_ref: str) -> Optional[Learner]:
        stmt = (
            select(Learner)
            .where(Learner.external_id == learner_ref)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    def _score(
        self, learner_id: int, submission: ValidatedSubmission
    ) -> Tuple[QuizResult, Optional[str]]:
        """Build the QuizResult row, plus the assigned path for aptitude quizzes."""
        if submission.quiz_type == QuizType.INTELLIGENCE:
            category_scores = dict(submission.category_scores or {})
            total = total_aptitude_score(category_scores, submission.total_score)
            assigned_path = None
            if category_scores:
                assigned_path = assign_path(
                    category_scores, self.answer_keys.aptitude_categories
                )
            result = QuizResult(
                learner_id=learner_id,
                quiz_type=submission.quiz_type,
                answers=dict(submission.answers),
                score=total,
                scores=category_scores,
                completed=True,
            )
            return result, assigned_path

        answer_key = submission.answer_key
        if answer_key is None:
            raise InvalidSubmissionError(
                ErrorMessages.answer_key_missing(
                    submission.quiz_type.value, submission.unit_id
                ),
                field="unitId" if submission.unit_id else "quizType",
            )
        answer_score = score_answers(submission.answers, answer_key)
        percentage = answer_score.percentage
        passed = None
        if submission.quiz_type == QuizType.UNIT:
            passed = percentage >= self.unit_pass_percentage

        result = QuizResult(
            learner_id=learner_id,
            quiz_type=submission.quiz_type,
            unit_id=submission.unit_id,
            unit_quiz_kind=submission.unit_quiz_kind,
            answers=dict(submission.answers),
            score=answer_score.correct,
            total_questions=answer_score.total,
            percentage=percentage,
            passed=passed,
            completed=True,
        )
        return result, None

    async def submit(self, submission: QuizSubmission) -> SubmissionOutcome:
        """
        Process one submission end to end.

        Returns:
            SubmissionAccepted, SubmissionRejected or SubmissionPartialFailure

        Raises:
            InvalidSubmissionError: Malformed submission; nothing written
            LearnerNotFoundError: The learner reference does not resolve
            DatabaseOperationError: Storage failure; nothing written
        """
        validated = self.validate(submission)
        token = learner_context.set(validated.learner_ref)
        try:
            return await self._submit(validated)
        finally:
            learner_context.reset(token)

    async def _submit(self, validated: ValidatedSubmission) -> SubmissionOutcome:
        quiz_type = validated.quiz_type

        async with self.locks.hold(validated.learner_ref):
            async with handle_db_error(self.db, "load learner"):
                learner = await self._load_learner_for_update(validated.learner_ref)

            if learner is None:
                await self.db.rollback()
                raise LearnerNotFoundError(validated.learner_ref)
            learner_id = learner.id

            decision = check_completion(
                learner,
                quiz_type,
                unit_quiz_kind=validated.unit_quiz_kind,
                unit_id=validated.unit_id,
            )
            if not decision.accepted:
                await self.db.rollback()
                logger.info(
                    f"Rejected {quiz_type.value} submission for learner "
                    f"{learner_id}: {decision.reason}",
                    extra={"learner_id": learner_id},
                )
                AnalyticsTracker.track_quiz_rejected(
                    learner_id, quiz_type.value, decision.reason or ""
                )
                return SubmissionRejected(reason=decision.reason or "")

            try:
                result, assigned_path = self._score(learner_id, validated)
            except InvalidSubmissionError:
                await self.db.rollback()
                raise

            progress: Optional[ProgressUpdate] = None
            progress_error: Optional[Exception] = None
            async with handle_db_error(self.db, "save quiz result"):
                self.db.add(result)
                await self.db.flush()
                result_id = result.id

                try:
                    async with self.db.begin_nested():
                        progress = await self.aggregator.apply(
                            self.db, learner, result, assigned_path=assigned_path
                        )
                except StaleProgressError as e:
                    logger.warning(
                        f"Discarding result for learner {learner_id}: {e}",
                        extra={"learner_id": learner_id},
                    )
                    raise DatabaseOperationError("update learner progress", e) from e
                except (ProgressUpdateError, SQLAlchemyError) as e:
                    progress_error = e

                await self.db.commit()

        if progress_error is not None or progress is None:
            error_message = str(progress_error)
            logger.error(
                f"Quiz result {result_id} saved but progress update failed for "
                f"learner {learner_id}: {error_message}",
                extra={"learner_id": learner_id, "result_id": result_id},
                exc_info=progress_error,
            )
            AnalyticsTracker.track_progress_update_failed(
                learner_id, result_id, error_message
            )
            return SubmissionPartialFailure(result_id=result_id, error=error_message)

        AnalyticsTracker.track_quiz_submitted(
            learner_id,
            result_id,
            quiz_type.value,
            result.score,
            percentage=result.percentage,
        )
        if quiz_type == QuizType.INTELLIGENCE:
            AnalyticsTracker.track_path_assigned(learner_id, progress.assigned_path)
        if progress.unit_completed and validated.unit_id is not None:
            AnalyticsTracker.track_unit_completed(
                learner_id, validated.unit_id, progress.completed_units_count
            )

        return SubmissionAccepted(result=result, progress=progress)
