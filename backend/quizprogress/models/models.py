"""
Database models for the quiz submission and learner progress service.

Two tables back the service:

- ``learners`` carries the learner identity plus the progress projection
  (aptitude scores, assigned path, pre/post-assessment percentages and the
  completed-unit set with its derived count). This is the single mutable
  record the rest of the application reads.
- ``quiz_results`` is append-only submission history. Rows are never
  updated and are never merged back into the progress projection.
"""
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from .base import Base


class QuizType(str, enum.Enum):
    """Quiz category enumeration (wire values of the quiz clients)."""

    INTELLIGENCE = "intelligence"  # aptitude quiz, derives the assigned path
    INITIAL = "initial"  # pre-assessment
    FINAL = "final"  # post-assessment
    UNIT = "unit"


class UnitQuizKind(str, enum.Enum):
    """Unit quiz sub-kind. Only FULL quizzes advance unit completion."""

    SMALL = "small"  # practice quiz
    FULL = "full"
    REMEDIAL = "remedial"


class Learner(Base):
    """Learner record with the cumulative progress projection."""

    __tablename__ = "learners"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String(64), unique=True, nullable=False, index=True)
    username = Column(String(100))
    email = Column(String(255), unique=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Progress projection. Write-once fields stay NULL until their quiz
    # is accepted; NULL (not falsiness) means "not yet taken".
    aptitude_scores = Column(JSON(none_as_null=True), nullable=True)
    # Format: {"linguistic": 3, "logical": 7, "interpersonal": 2}
    assigned_path = Column(String(50), nullable=True)
    initial_score = Column(Integer, nullable=True)  # pre-assessment percentage
    final_score = Column(Integer, nullable=True)  # post-assessment percentage

    completed_units = Column(JSON, nullable=False, default=list)
    # Always min(len(completed_units), MAX_UNIT_COUNT); written only together
    # with completed_units by the progress aggregator.
    completed_units_count = Column(Integer, nullable=False, default=0)

    # Compare-and-set guard for progress writes, bumped on every update
    progress_version = Column(Integer, nullable=False, default=0)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    quiz_results = relationship(
        "QuizResult",
        back_populates="learner",
        cascade="all, delete-orphan",
        order_by="QuizResult.created_at.desc()",
    )

    __table_args__ = (
        CheckConstraint(
            "completed_units_count >= 0",
            name="ck_learners_completed_units_count_non_negative",
        ),
    )


class QuizResult(Base):
    """One accepted quiz submission. Immutable history."""

    __tablename__ = "quiz_results"

    id = Column(Integer, primary_key=True, index=True)
    learner_id = Column(
        Integer,
        ForeignKey("learners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quiz_type = Column(Enum(QuizType), nullable=False)
    unit_id = Column(String(64), nullable=True)
    unit_quiz_kind = Column(Enum(UnitQuizKind), nullable=True)
    answers = Column(JSON, nullable=False)
    # Raw correct count for knowledge quizzes, category total for aptitude
    score = Column(Float, nullable=False)
    total_questions = Column(Integer, nullable=True)
    percentage = Column(Integer, nullable=True)
    scores = Column(JSON(none_as_null=True), nullable=True)  # aptitude category scores
    passed = Column(Boolean, nullable=True)  # unit quizzes only
    completed = Column(Boolean, default=True, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    learner = relationship("Learner", back_populates="quiz_results")

    __table_args__ = (
        Index("ix_quiz_results_learner_type", "learner_id", "quiz_type"),
        Index("ix_quiz_results_learner_unit", "learner_id", "unit_id"),
        CheckConstraint(
            "percentage IS NULL OR (percentage >= 0 AND percentage <= 100)",
            name="ck_quiz_results_percentage_range",
        ),
    )
