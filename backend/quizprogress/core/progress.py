"""
Learner progress aggregation.

The progress projection on the learner row is the single mutable record of
a learner's cumulative state. Every change to it goes through
ProgressAggregator.apply, which writes all affected columns in one
conditional UPDATE guarded by progress_version:

    UPDATE learners SET ..., progress_version = v + 1
    WHERE id = :learner_id AND progress_version = v

- Aptitude results set aptitude_scores and assigned_path together.
- Assessment results set the matching percentage.
- A passed full unit quiz adds the unit to completed_units if absent and
  recomputes completed_units_count from the new set in the same statement.
- Everything else (failed or practice/remedial unit quizzes) leaves progress
  unchanged; the result row is still kept as history.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from quizprogress.core.datetime_utils import utc_now
from quizprogress.core.exceptions import StaleProgressError
from quizprogress.models.models import Learner, QuizResult, QuizType, UnitQuizKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressUpdate:
    """Progress delta produced by applying one quiz result."""

    changed: bool
    assigned_path: Optional[str] = None
    completed_units_count: int = 0
    unit_completed: bool = False


class ProgressAggregator:
    """Applies accepted quiz results to the learner progress projection."""

    def __init__(self, max_unit_count: int):
        self.max_unit_count = max_unit_count

    def completed_count(self, completed_units: List[str]) -> int:
        """Derive the completed-unit count from the completed-unit set."""
        return min(len(completed_units), self.max_unit_count)

    def plan_update(
        self,
        learner: Learner,
        result: QuizResult,
        assigned_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Compute the progress columns a result changes, without writing.

        Returns:
            Column values to write; empty when the result does not affect
            progress
        """
        if result.quiz_type == QuizType.INTELLIGENCE:
            return {
                "aptitude_scores": dict(result.scores or {}),
                "assigned_path": assigned_path,
            }

        if result.quiz_type == QuizType.INITIAL:
            return {"initial_score": result.percentage}

        if result.quiz_type == QuizType.FINAL:
            return {"final_score": result.percentage}

        if result.unit_quiz_kind != UnitQuizKind.FULL or not result.passed:
            return {}

        existing: List[str] = list(learner.completed_units or [])
        if result.unit_id in existing:
            return {}

        completed_units = existing + [result.unit_id]
        return {
            "completed_units": completed_units,
            "completed_units_count": self.completed_count(completed_units),
        }

    async def apply(
        self,
        db: AsyncSession,
        learner: Learner,
        result: QuizResult,
        assigned_path: Optional[str] = None,
    ) -> ProgressUpdate:
        """
        Apply a persisted quiz result to the learner's progress.

        Must run inside the caller's transaction, under the learner's
        critical section, after the completion gate accepted the submission.

        Args:
            db: Async database session holding the submission transaction
            learner: Learner row loaded for update
            result: The just-persisted quiz result
            assigned_path: Path derived from aptitude scores (aptitude only)

        Returns:
            ProgressUpdate describing the delta

        Raises:
            StaleProgressError: If progress_version no longer matches
            SQLAlchemyError: If the UPDATE fails
        """
        values = self.plan_update(learner, result, assigned_path=assigned_path)
        if not values:
            return ProgressUpdate(
                changed=False,
                assigned_path=learner.assigned_path,
                completed_units_count=learner.completed_units_count or 0,
            )

        expected_version = learner.progress_version or 0
        values["progress_version"] = expected_version + 1
        values["updated_at"] = utc_now()

        stmt = (
            update(Learner)
            .where(
                Learner.id == learner.id,
                Learner.progress_version == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        outcome = await db.execute(stmt)
        if outcome.rowcount != 1:
            raise StaleProgressError(learner.id, expected_version)

        # Keep the loaded instance in step without marking it dirty
        for key, value in values.items():
            set_committed_value(learner, key, value)

        unit_completed = "completed_units" in values
        logger.info(
            f"Applied {result.quiz_type.value} result {result.id} to learner "
            f"{learner.id} progress (version {values['progress_version']})",
            extra={"learner_id": learner.id, "result_id": result.id},
        )

        return ProgressUpdate(
            changed=True,
            assigned_path=learner.assigned_path,
            completed_units_count=learner.completed_units_count or 0,
            unit_completed=unit_completed,
        )
