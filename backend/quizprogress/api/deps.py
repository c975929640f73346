"""
Shared FastAPI dependencies for the v1 routers.
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from quizprogress.core import settings
from quizprogress.core.answer_keys import AnswerKeyConfig
from quizprogress.core.submission import SubmissionEngine
from quizprogress.models import get_db


def get_answer_keys(request: Request) -> AnswerKeyConfig:
    """Answer keys loaded into app.state at startup."""
    return request.app.state.answer_keys


def get_submission_engine(
    db: AsyncSession = Depends(get_db),
    answer_keys: AnswerKeyConfig = Depends(get_answer_keys),
) -> SubmissionEngine:
    """Build a submission engine bound to the request's session."""
    return SubmissionEngine(
        db,
        answer_keys,
        max_unit_count=settings.MAX_UNIT_COUNT,
        unit_pass_percentage=settings.UNIT_PASS_PERCENTAGE,
    )
