"""
Tests for the submission engine.
"""
import asyncio
import math

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError

from quizprogress.core.db_error_handling import DatabaseOperationError
from quizprogress.core.exceptions import InvalidSubmissionError, LearnerNotFoundError
from quizprogress.core.logging_config import learner_context
from quizprogress.core.progress import ProgressAggregator
from quizprogress.core.submission import (
    QuizSubmission,
    SubmissionAccepted,
    SubmissionPartialFailure,
    SubmissionRejected,
    ValidatedSubmission,
)
from quizprogress.models.models import Learner, QuizResult, QuizType, UnitQuizKind

UNIT_1_ALL_CORRECT = {"q1": "a", "q2": "b", "q3": "c", "q4": "d", "q5": "a"}
UNIT_1_TWO_CORRECT = {"q1": "a", "q2": "b", "q3": "x", "q4": "x", "q5": "x"}


async def count_results(db, learner_id) -> int:
    return (
        await db.execute(
            select(func.count(QuizResult.id)).where(
                QuizResult.learner_id == learner_id
            )
        )
    ).scalar_one()


async def reload_learner(session_factory, learner_id) -> Learner:
    async with session_factory() as db:
        return (
            await db.execute(select(Learner).where(Learner.id == learner_id))
        ).scalar_one()


def full_unit(answers=UNIT_1_ALL_CORRECT, unit_id="unit-1", kind=UnitQuizKind.FULL):
    return QuizSubmission(
        quiz_type=QuizType.UNIT,
        learner_ref="learner-1",
        answers=answers,
        unit_id=unit_id,
        unit_quiz_kind=kind,
    )


class FailingAggregator(ProgressAggregator):
    """Aggregator whose write always fails at the storage layer."""

    async def apply(self, db, learner, result, assigned_path=None):
        raise OperationalError("UPDATE learners", {}, Exception("disk I/O error"))


class RacingAggregator(ProgressAggregator):
    """Aggregator that loses the progress_version race."""

    async def apply(self, db, learner, result, assigned_path=None):
        await db.execute(
            update(Learner)
            .where(Learner.id == learner.id)
            .values(progress_version=Learner.progress_version + 1)
            .execution_options(synchronize_session=False)
        )
        return await super().apply(db, learner, result, assigned_path=assigned_path)


class ContextCapturingAggregator(ProgressAggregator):
    """Aggregator that records the learner logging context it runs under."""

    seen = None

    async def apply(self, db, learner, result, assigned_path=None):
        self.seen = learner_context.get()
        return await super().apply(db, learner, result, assigned_path=assigned_path)


class TestValidation:
    """Shape validation runs before any storage access."""

    @pytest.mark.parametrize(
        "submission,field",
        [
            (
                QuizSubmission(quiz_type="essay", learner_ref="l", answers={"q": "a"}),
                "quizType",
            ),
            (
                QuizSubmission(quiz_type="initial", learner_ref="l", answers={}),
                "answers",
            ),
            (
                QuizSubmission(
                    quiz_type="unit",
                    learner_ref="l",
                    answers={"q1": "a"},
                    unit_quiz_kind="full",
                ),
                "unitId",
            ),
            (
                QuizSubmission(
                    quiz_type="unit",
                    learner_ref="l",
                    answers={"q1": "a"},
                    unit_id="unit-1",
                ),
                "unitQuizKind",
            ),
            (
                QuizSubmission(
                    quiz_type="unit",
                    learner_ref="l",
                    answers={"q1": "a"},
                    unit_id="unit-1",
                    unit_quiz_kind="practice",
                ),
                "unitQuizKind",
            ),
            (
                QuizSubmission(
                    quiz_type="unit",
                    learner_ref="l",
                    answers={"q1": "a"},
                    unit_id="unit-9",
                    unit_quiz_kind="full",
                ),
                "unitId",
            ),
            (
                QuizSubmission(
                    quiz_type="intelligence",
                    learner_ref="l",
                    answers={"q1": "a"},
                    category_scores={"musical": 4},
                ),
                "scores",
            ),
            (
                QuizSubmission(
                    quiz_type="intelligence",
                    learner_ref="l",
                    answers={"q1": "a"},
                    category_scores={"linguistic": math.nan, "logical": 5},
                ),
                "scores",
            ),
            (
                QuizSubmission(
                    quiz_type="intelligence",
                    learner_ref="l",
                    answers={"q1": "a"},
                    total_score=math.inf,
                ),
                "score",
            ),
        ],
    )
    def test_invalid_shapes(self, make_engine, submission, field):
        # No session is needed: validation never touches storage
        engine = make_engine(None)

        with pytest.raises(InvalidSubmissionError) as exc_info:
            engine.validate(submission)

        assert exc_info.value.field == field

    def test_wire_values_are_coerced(self, make_engine):
        engine = make_engine(None)

        validated = engine.validate(full_unit(kind="remedial"))

        assert validated.quiz_type == QuizType.UNIT
        assert validated.unit_quiz_kind == UnitQuizKind.REMEDIAL
        assert validated.answer_key is not None

    def test_unit_fields_dropped_for_other_quizzes(self, make_engine):
        engine = make_engine(None)

        validated = engine.validate(
            QuizSubmission(
                quiz_type=QuizType.INITIAL,
                learner_ref="l",
                answers={"q1": "a"},
                unit_id="unit-1",
                unit_quiz_kind=UnitQuizKind.FULL,
            )
        )

        assert validated.unit_id is None
        assert validated.unit_quiz_kind is None

    def test_knowledge_quiz_without_answer_key_is_invalid(self, make_engine):
        engine = make_engine(None)
        validated = ValidatedSubmission(
            quiz_type=QuizType.FINAL,
            learner_ref="l",
            answers={"q1": "a"},
            category_scores=None,
            total_score=None,
            unit_id=None,
            unit_quiz_kind=None,
            answer_key=None,
        )

        with pytest.raises(InvalidSubmissionError) as exc_info:
            engine._score(1, validated)

        assert exc_info.value.field == "quizType"


class TestKnowledgeQuizzes:
    """Pre/post-assessment submissions."""

    async def test_initial_quiz_scored_and_stored(
        self, async_db_session, learner, make_engine, session_factory
    ):
        engine = make_engine(async_db_session)

        outcome = await engine.submit(
            QuizSubmission(
                quiz_type="initial",
                learner_ref="learner-1",
                answers={"q1": "a", "q2": "b", "q3": "c"},
            )
        )

        assert isinstance(outcome, SubmissionAccepted)
        assert outcome.result.score == 2
        assert outcome.result.total_questions == 3
        assert outcome.result.percentage == 67

        stored = await reload_learner(session_factory, learner.id)
        assert stored.initial_score == 67
        assert stored.progress_version == 1

    async def test_learner_logging_context_scoped_to_submission(
        self, async_db_session, learner, make_engine
    ):
        aggregator = ContextCapturingAggregator(10)
        engine = make_engine(async_db_session, aggregator=aggregator)

        await engine.submit(
            QuizSubmission(
                quiz_type="final", learner_ref="learner-1", answers={"q1": "b"}
            )
        )

        assert aggregator.seen == "learner-1"
        assert learner_context.get() is None

    async def test_second_submission_rejected_without_writes(
        self, async_db_session, learner, make_engine, session_factory
    ):
        engine = make_engine(async_db_session)
        submission = QuizSubmission(
            quiz_type="initial",
            learner_ref="learner-1",
            answers={"q1": "a", "q2": "b", "q3": "c"},
        )
        await engine.submit(submission)

        outcome = await engine.submit(
            QuizSubmission(
                quiz_type="initial",
                learner_ref="learner-1",
                answers={"q1": "a", "q2": "x", "q3": "c"},
            )
        )

        assert isinstance(outcome, SubmissionRejected)
        assert "initial" in outcome.reason
        assert await count_results(async_db_session, learner.id) == 1
        stored = await reload_learner(session_factory, learner.id)
        assert stored.initial_score == 67

    async def test_zero_score_still_blocks_retake(
        self, async_db_session, learner, make_engine
    ):
        engine = make_engine(async_db_session)
        zero = QuizSubmission(
            quiz_type="final", learner_ref="learner-1", answers={"q1": "x"}
        )

        first = await engine.submit(zero)
        second = await engine.submit(zero)

        assert isinstance(first, SubmissionAccepted)
        assert first.result.percentage == 0
        assert isinstance(second, SubmissionRejected)

    async def test_unknown_learner(self, async_db_session, make_engine):
        engine = make_engine(async_db_session)

        with pytest.raises(LearnerNotFoundError):
            await engine.submit(
                QuizSubmission(
                    quiz_type="initial", learner_ref="nobody", answers={"q1": "a"}
                )
            )


class TestAptitudeQuiz:
    """Intelligence quiz submissions."""

    async def test_path_assigned_from_category_scores(
        self, async_db_session, learner, make_engine, session_factory
    ):
        engine = make_engine(async_db_session)

        outcome = await engine.submit(
            QuizSubmission(
                quiz_type="intelligence",
                learner_ref="learner-1",
                answers={"q1": "a", "q2": "b"},
                category_scores={"linguistic": 3, "logical": 7, "interpersonal": 2},
            )
        )

        assert isinstance(outcome, SubmissionAccepted)
        assert outcome.result.score == 12
        assert outcome.progress.assigned_path == "logical"

        stored = await reload_learner(session_factory, learner.id)
        assert stored.assigned_path == "logical"
        assert stored.aptitude_scores == {
            "linguistic": 3,
            "logical": 7,
            "interpersonal": 2,
        }

    async def test_tie_assigns_first_declared_category(
        self, async_db_session, learner, make_engine
    ):
        engine = make_engine(async_db_session)

        outcome = await engine.submit(
            QuizSubmission(
                quiz_type="intelligence",
                learner_ref="learner-1",
                answers={"q1": "a"},
                category_scores={"logical": 5, "linguistic": 5},
            )
        )

        assert outcome.progress.assigned_path == "linguistic"

    async def test_invalid_total_rejected_without_result(
        self, async_db_session, learner, make_engine
    ):
        engine = make_engine(async_db_session)

        with pytest.raises(InvalidSubmissionError):
            await engine.submit(
                QuizSubmission(
                    quiz_type="intelligence",
                    learner_ref="learner-1",
                    answers={"q1": "a"},
                    category_scores={},
                    total_score=0,
                )
            )

        assert await count_results(async_db_session, learner.id) == 0

    @pytest.mark.parametrize(
        "category_scores,total_score",
        [
            (None, math.inf),
            ({}, math.nan),
            ({"linguistic": math.nan, "logical": 5}, None),
            ({"logical": -math.inf}, None),
            ({"linguistic": 1e308, "logical": 1e308}, None),
        ],
    )
    async def test_non_finite_scores_rejected_without_writes(
        self,
        async_db_session,
        learner,
        make_engine,
        session_factory,
        category_scores,
        total_score,
    ):
        engine = make_engine(async_db_session)

        with pytest.raises(InvalidSubmissionError):
            await engine.submit(
                QuizSubmission(
                    quiz_type="intelligence",
                    learner_ref="learner-1",
                    answers={"q1": "a"},
                    category_scores=category_scores,
                    total_score=total_score,
                )
            )

        assert await count_results(async_db_session, learner.id) == 0
        stored = await reload_learner(session_factory, learner.id)
        assert stored.aptitude_scores is None
        assert stored.progress_version == 0

    async def test_total_only_submission_completes_without_path(
        self, async_db_session, learner, make_engine, session_factory
    ):
        engine = make_engine(async_db_session)
        submission = QuizSubmission(
            quiz_type="intelligence",
            learner_ref="learner-1",
            answers={"q1": "a"},
            total_score=14,
        )

        first = await engine.submit(submission)
        second = await engine.submit(submission)

        assert isinstance(first, SubmissionAccepted)
        assert first.result.score == 14
        assert first.progress.assigned_path is None
        assert isinstance(second, SubmissionRejected)

        stored = await reload_learner(session_factory, learner.id)
        assert stored.aptitude_scores == {}
        assert stored.assigned_path is None

    async def test_second_aptitude_submission_rejected(
        self, async_db_session, learner, make_engine
    ):
        engine = make_engine(async_db_session)
        submission = QuizSubmission(
            quiz_type="intelligence",
            learner_ref="learner-1",
            answers={"q1": "a"},
            category_scores={"interpersonal": 9},
        )

        await engine.submit(submission)
        outcome = await engine.submit(submission)

        assert isinstance(outcome, SubmissionRejected)
        assert await count_results(async_db_session, learner.id) == 1


class TestUnitQuizzes:
    """Unit quiz submissions and completion tracking."""

    async def test_passed_full_quiz_completes_unit(
        self, async_db_session, learner, make_engine, session_factory
    ):
        engine = make_engine(async_db_session)

        outcome = await engine.submit(full_unit())

        assert isinstance(outcome, SubmissionAccepted)
        assert outcome.result.passed is True
        assert outcome.progress.unit_completed
        assert outcome.progress.completed_units_count == 1

        stored = await reload_learner(session_factory, learner.id)
        assert stored.completed_units == ["unit-1"]
        assert stored.completed_units_count == 1

    async def test_failed_full_quiz_is_history_only(
        self, async_db_session, learner, make_engine, session_factory
    ):
        engine = make_engine(async_db_session)

        outcome = await engine.submit(full_unit(answers=UNIT_1_TWO_CORRECT))

        assert isinstance(outcome, SubmissionAccepted)
        assert outcome.result.percentage == 40
        assert outcome.result.passed is False
        assert not outcome.progress.changed
        assert await count_results(async_db_session, learner.id) == 1

        stored = await reload_learner(session_factory, learner.id)
        assert stored.completed_units == []
        assert stored.completed_units_count == 0

    async def test_failed_attempts_can_be_retried(
        self, async_db_session, learner, make_engine
    ):
        engine = make_engine(async_db_session)

        for _ in range(3):
            await engine.submit(full_unit(answers=UNIT_1_TWO_CORRECT))
        outcome = await engine.submit(full_unit())

        assert isinstance(outcome, SubmissionAccepted)
        assert outcome.progress.completed_units_count == 1
        assert await count_results(async_db_session, learner.id) == 4

    async def test_practice_and_remedial_never_complete(
        self, async_db_session, learner, make_engine, session_factory
    ):
        engine = make_engine(async_db_session)

        for kind in (UnitQuizKind.SMALL, UnitQuizKind.REMEDIAL):
            outcome = await engine.submit(full_unit(kind=kind))
            assert isinstance(outcome, SubmissionAccepted)
            assert outcome.result.passed is True
            assert not outcome.progress.changed

        stored = await reload_learner(session_factory, learner.id)
        assert stored.completed_units == []

    async def test_completed_unit_rejects_full_but_allows_practice(
        self, async_db_session, learner, make_engine
    ):
        engine = make_engine(async_db_session)
        await engine.submit(full_unit())

        rejected = await engine.submit(full_unit())
        practice = await engine.submit(full_unit(kind=UnitQuizKind.SMALL))

        assert isinstance(rejected, SubmissionRejected)
        assert "unit-1" in rejected.reason
        assert isinstance(practice, SubmissionAccepted)

    async def test_count_tracks_completed_set(
        self, async_db_session, learner, make_engine, session_factory
    ):
        engine = make_engine(async_db_session, max_unit_count=1)

        await engine.submit(full_unit())
        outcome = await engine.submit(
            full_unit(answers={"q1": "d", "q2": "c"}, unit_id="unit-2")
        )

        # The count is derived from the set and capped at max_unit_count
        assert outcome.progress.completed_units_count == 1
        stored = await reload_learner(session_factory, learner.id)
        assert stored.completed_units == ["unit-1", "unit-2"]
        assert stored.completed_units_count == 1

    async def test_pass_threshold_is_configurable(
        self, async_db_session, learner, make_engine
    ):
        engine = make_engine(async_db_session, unit_pass_percentage=40)

        outcome = await engine.submit(full_unit(answers=UNIT_1_TWO_CORRECT))

        assert outcome.result.passed is True
        assert outcome.progress.unit_completed

    async def test_concurrent_full_submissions_complete_unit_once(
        self, learner, make_engine, session_factory
    ):
        async def submit_in_own_session():
            async with session_factory() as db:
                return await make_engine(db).submit(full_unit())

        outcomes = await asyncio.gather(
            submit_in_own_session(), submit_in_own_session()
        )

        accepted = [o for o in outcomes if isinstance(o, SubmissionAccepted)]
        rejected = [o for o in outcomes if isinstance(o, SubmissionRejected)]
        assert len(accepted) == 1
        assert len(rejected) == 1

        stored = await reload_learner(session_factory, learner.id)
        assert stored.completed_units == ["unit-1"]
        assert stored.completed_units_count == 1
        async with session_factory() as db:
            assert await count_results(db, learner.id) == 1


class TestProgressFailures:
    """Failures after the result row was written."""

    async def test_progress_failure_keeps_result_and_reports_it(
        self, async_db_session, learner, make_engine, session_factory
    ):
        engine = make_engine(
            async_db_session, aggregator=FailingAggregator(max_unit_count=10)
        )

        outcome = await engine.submit(full_unit())

        assert isinstance(outcome, SubmissionPartialFailure)
        assert "disk I/O error" in outcome.error

        async with session_factory() as db:
            stored_result = (
                await db.execute(
                    select(QuizResult).where(QuizResult.id == outcome.result_id)
                )
            ).scalar_one()
            assert stored_result.learner_id == learner.id
            assert stored_result.passed is True

        stored = await reload_learner(session_factory, learner.id)
        assert stored.completed_units == []
        assert stored.progress_version == 0

    async def test_lost_version_race_persists_nothing(
        self, async_db_session, learner, make_engine, session_factory
    ):
        engine = make_engine(
            async_db_session, aggregator=RacingAggregator(max_unit_count=10)
        )

        with pytest.raises(DatabaseOperationError) as exc_info:
            await engine.submit(full_unit())

        assert exc_info.value.operation_name == "update learner progress"
        async with session_factory() as db:
            assert await count_results(db, learner.id) == 0
        stored = await reload_learner(session_factory, learner.id)
        assert stored.completed_units == []
        assert stored.progress_version == 0
