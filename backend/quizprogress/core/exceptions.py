"""
Domain exceptions raised by the submission engine.

Business rejections (an already completed quiz) are not exceptions; they are
returned as outcomes. These exceptions cover malformed input, unresolvable
learners and progress writes that could not be applied. Storage failures use
DatabaseOperationError from quizprogress.core.db_error_handling.
"""


class InvalidSubmissionError(ValueError):
    """A submission failed shape or scoring validation. Nothing was written."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        self.message = message
        super().__init__(message)


class LearnerNotFoundError(LookupError):
    """The learner identity does not resolve to a learner record."""

    def __init__(self, learner_ref: str):
        self.learner_ref = learner_ref
        super().__init__(f"Learner not found: {learner_ref}")


class ProgressUpdateError(Exception):
    """The learner progress projection could not be updated."""

    pass


class StaleProgressError(ProgressUpdateError):
    """The progress row changed between read and conditional write.

    Raised when the compare-and-set on progress_version matches no row. The
    whole submission is aborted because the completion decision was made on
    stale state.
    """

    def __init__(self, learner_id: int, expected_version: int):
        self.learner_id = learner_id
        self.expected_version = expected_version
        super().__init__(
            f"Progress for learner {learner_id} changed concurrently "
            f"(expected version {expected_version})"
        )
