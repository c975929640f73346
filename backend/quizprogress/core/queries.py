"""
Read-side queries for learners and quiz result history.
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quizprogress.models.models import Learner, QuizResult, QuizType


async def get_learner_by_external_id(
    db: AsyncSession, external_id: str
) -> Optional[Learner]:
    """Look up a learner by the identifier clients send as `user`."""
    result = await db.execute(
        select(Learner).where(Learner.external_id == external_id)
    )
    return result.scalar_one_or_none()


async def list_quiz_results(
    db: AsyncSession,
    learner_id: int,
    quiz_type: Optional[QuizType] = None,
    limit: Optional[int] = None,
) -> List[QuizResult]:
    """
    Return a learner's quiz results, newest first.

    Args:
        db: Async database session
        learner_id: Internal learner id
        quiz_type: Restrict to one quiz category
        limit: Maximum number of rows to return

    Returns:
        QuizResult rows ordered by created_at descending
    """
    stmt = select(QuizResult).where(QuizResult.learner_id == learner_id)
    if quiz_type is not None:
        stmt = stmt.where(QuizResult.quiz_type == quiz_type)
    stmt = stmt.order_by(QuizResult.created_at.desc(), QuizResult.id.desc())
    if limit is not None:
        stmt = stmt.limit(limit)

    result = await db.execute(stmt)
    return list(result.scalars().all())
