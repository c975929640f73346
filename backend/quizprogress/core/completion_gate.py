"""
Completion gate: decides whether a submission may be accepted before it is
scored.

The aptitude quiz and both assessments are write-once per learner; a full
unit quiz is accepted only while its unit is not yet completed. Practice
(small) and remedial unit quizzes are repeatable and never gated.

The gate reads the learner progress projection only. The caller must hold
the learner's critical section across the gate check and the progress write
(see quizprogress.core.submission), otherwise two concurrent submissions can
both observe "not yet completed".
"""
from dataclasses import dataclass
from typing import Any, Optional

from quizprogress.core.error_responses import ErrorMessages
from quizprogress.models.models import Learner, QuizType, UnitQuizKind


@dataclass(frozen=True)
class GateDecision:
    """Accept, or reject with a user-facing reason."""

    accepted: bool
    reason: Optional[str] = None

    @classmethod
    def accept(cls) -> "GateDecision":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: str) -> "GateDecision":
        return cls(accepted=False, reason=reason)


@dataclass(frozen=True)
class CompletionStatus:
    """Whether a quiz is completed for a learner, and the stored score."""

    completed: bool
    score: Any = None


def check_completion(
    learner: Learner,
    quiz_type: QuizType,
    unit_quiz_kind: Optional[UnitQuizKind] = None,
    unit_id: Optional[str] = None,
) -> GateDecision:
    """
    Decide whether a submission may proceed.

    Emptiness, not falsiness, is the test: an initial score of 0 is a real
    prior result and blocks a retake.

    Args:
        learner: Learner whose progress projection is checked
        quiz_type: Category of the submitted quiz
        unit_quiz_kind: Sub-kind for unit quizzes
        unit_id: Unit identifier for unit quizzes

    Returns:
        GateDecision.accept() or GateDecision.reject(reason)
    """
    if quiz_type == QuizType.INTELLIGENCE:
        if learner.aptitude_scores is not None:
            return GateDecision.reject(
                ErrorMessages.quiz_already_completed(quiz_type.value)
            )
        return GateDecision.accept()

    if quiz_type == QuizType.INITIAL:
        if learner.initial_score is not None:
            return GateDecision.reject(
                ErrorMessages.quiz_already_completed(quiz_type.value)
            )
        return GateDecision.accept()

    if quiz_type == QuizType.FINAL:
        if learner.final_score is not None:
            return GateDecision.reject(
                ErrorMessages.quiz_already_completed(quiz_type.value)
            )
        return GateDecision.accept()

    # Unit quizzes: only full attempts are gated
    if unit_quiz_kind == UnitQuizKind.FULL and unit_id in (
        learner.completed_units or []
    ):
        return GateDecision.reject(ErrorMessages.unit_already_completed(unit_id))
    return GateDecision.accept()


def describe_completion(
    learner: Learner, quiz_type: QuizType, unit_id: Optional[str] = None
) -> CompletionStatus:
    """
    Report completion state for the check-completion endpoint.

    The score is the stored progress value: the aptitude category scores or
    the assessment percentage. Units report completion only.
    """
    if quiz_type == QuizType.INTELLIGENCE:
        return CompletionStatus(
            completed=learner.aptitude_scores is not None,
            score=learner.aptitude_scores,
        )
    if quiz_type == QuizType.INITIAL:
        return CompletionStatus(
            completed=learner.initial_score is not None,
            score=learner.initial_score,
        )
    if quiz_type == QuizType.FINAL:
        return CompletionStatus(
            completed=learner.final_score is not None,
            score=learner.final_score,
        )

    completed = unit_id is not None and unit_id in (learner.completed_units or [])
    return CompletionStatus(completed=completed)
