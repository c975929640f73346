"""
Quiz scoring and learner path assignment.

Pure functions, no storage access:

- Knowledge quizzes (pre/post-assessment and unit quizzes) are scored by
  exact comparison against a fixed answer key.
- The aptitude quiz arrives with per-category scores computed by the
  client; the total is their sum and the assigned path is the category with
  the highest score.
"""
import math
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from quizprogress.core.error_responses import ErrorMessages
from quizprogress.core.exceptions import InvalidSubmissionError


@dataclass(frozen=True)
class AnswerScore:
    """Result of scoring a knowledge quiz."""

    correct: int
    total: int

    @property
    def percentage(self) -> int:
        """Percentage of correct answers, rounded half up."""
        return calculate_percentage(self.correct, self.total)


def calculate_percentage(correct: int, total: int) -> int:
    """
    Convert a raw score into an integer percentage, rounding half up.

    Uses integer arithmetic so 0.5 boundaries never depend on float
    representation: 1/8 = 12.5% -> 13, 2/3 = 66.67% -> 67.

    Args:
        correct: Number of correct answers (0 <= correct <= total)
        total: Number of answered questions

    Returns:
        Percentage in the range 0-100

    Raises:
        InvalidSubmissionError: If total is not positive
    """
    if total <= 0:
        raise InvalidSubmissionError(
            "Cannot score a quiz with no answered questions.", field="answers"
        )
    return (200 * correct + total) // (2 * total)


def score_answers(
    answers: Mapping[str, str], answer_key: Mapping[str, str]
) -> AnswerScore:
    """
    Score submitted answers against an answer key.

    Every submitted question id is compared with exact equality against the
    key. The denominator is the number of submitted answers: extra or missing
    entries in the key never change it, and an answer to a question the key
    does not know is simply incorrect.

    Args:
        answers: Mapping of question id to submitted answer
        answer_key: Mapping of question id to correct answer

    Returns:
        AnswerScore with the correct count and total questions

    Raises:
        InvalidSubmissionError: If no answers were submitted

    Example:
        >>> score_answers({"q1": "a", "q2": "b", "q3": "c"},
        ...               {"q1": "a", "q2": "x", "q3": "c"})
        AnswerScore(correct=2, total=3)
    """
    total = len(answers)
    if total == 0:
        raise InvalidSubmissionError(
            "Cannot score a quiz with no answered questions.", field="answers"
        )

    correct = 0
    for question_id, answer in answers.items():
        if question_id in answer_key and answer_key[question_id] == answer:
            correct += 1

    return AnswerScore(correct=correct, total=total)


def total_aptitude_score(
    category_scores: Optional[Mapping[str, float]],
    fallback_total: Optional[float] = None,
) -> float:
    """
    Compute the aptitude quiz total.

    The total is the sum of the category scores when any are present,
    otherwise the caller-supplied total.

    Args:
        category_scores: Per-category scores reported by the client
        fallback_total: Total reported by the client, used only when there
            are no category scores

    Returns:
        The aptitude total

    Raises:
        InvalidSubmissionError: If the total is NaN or infinite, or if it is
            not positive and there are no category scores. A non-positive
            total with an empty mapping cannot be told apart from a
            malformed payload.
    """
    if category_scores:
        total = float(sum(category_scores.values()))
        field = "scores"
    else:
        total = float(fallback_total) if fallback_total is not None else 0.0
        field = "score"
        if total <= 0:
            raise InvalidSubmissionError(
                ErrorMessages.INVALID_APTITUDE_SCORES, field="scores"
            )

    if not math.isfinite(total):
        raise InvalidSubmissionError(
            ErrorMessages.NON_FINITE_APTITUDE_SCORES, field=field
        )
    return total


def assign_path(
    category_scores: Mapping[str, float], category_order: Sequence[str]
) -> str:
    """
    Select the learner path from aptitude category scores.

    The category with the strictly greatest score wins. Ties go to the
    category declared first in category_order, never to mapping order.

    Args:
        category_scores: Per-category scores; every key must appear in
            category_order
        category_order: Declared categories, in tie-break order

    Returns:
        The winning category name

    Raises:
        InvalidSubmissionError: If there are no scores or a category is not
            declared in category_order

    Example:
        >>> assign_path({"logical": 5, "linguistic": 5},
        ...             ["linguistic", "logical", "interpersonal"])
        'linguistic'
    """
    if not category_scores:
        raise InvalidSubmissionError(
            "Cannot assign a path without category scores.", field="scores"
        )

    unknown = set(category_scores) - set(category_order)
    if unknown:
        raise InvalidSubmissionError(
            f"Unknown intelligence categories: {', '.join(sorted(unknown))}.",
            field="scores",
        )

    ranked = [category for category in category_order if category in category_scores]
    best_category = ranked[0]
    for category in ranked[1:]:
        if category_scores[category] > category_scores[best_category]:
            best_category = category
    return best_category
