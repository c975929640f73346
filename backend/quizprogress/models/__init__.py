"""
Models package for the quiz progress backend.
"""
from .base import Base, async_engine, AsyncSessionLocal, get_db
from .models import (
    Learner,
    QuizResult,
    QuizType,
    UnitQuizKind,
)

__all__ = [
    "Base",
    "async_engine",
    "AsyncSessionLocal",
    "get_db",
    "Learner",
    "QuizResult",
    "QuizType",
    "UnitQuizKind",
]
