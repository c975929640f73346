"""
Analytics and event tracking for quiz submissions and learner progress.
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any

from quizprogress.core.config import settings

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Analytics event types."""

    # Submission events
    QUIZ_SUBMITTED = "quiz.submitted"
    QUIZ_REJECTED = "quiz.rejected"

    # Progress events
    PATH_ASSIGNED = "path.assigned"
    UNIT_COMPLETED = "unit.completed"
    PROGRESS_UPDATE_FAILED = "progress.update_failed"

    # API events
    API_ERROR = "api.error"


class AnalyticsTracker:
    """
    Analytics event tracker for logging and monitoring learner actions.

    Events are emitted as structured log entries; an external analytics
    sink can consume them from the log stream.
    """

    @staticmethod
    def track_event(
        event_type: EventType,
        learner_id: Optional[int] = None,
        properties: Optional[Dict[str, Any]] = None,
        level: int = logging.INFO,
    ) -> None:
        """
        Track an analytics event.

        Args:
            event_type: Type of event being tracked
            learner_id: Optional learner ID associated with the event
            properties: Optional dictionary of event properties
            level: Log level for the event entry

        Example:
            AnalyticsTracker.track_event(
                EventType.UNIT_COMPLETED,
                learner_id=123,
                properties={"unit_id": "unit-1", "completed_units_count": 3}
            )
        """
        event_data = {
            "event": event_type.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "learner_id": learner_id,
            "properties": properties or {},
            "environment": settings.ENV,
        }

        logger.log(
            level,
            f"Analytics Event: {event_type.value}",
            extra={
                "event_data": event_data,
                "learner_id": learner_id,
            },
        )

    @staticmethod
    def track_quiz_submitted(
        learner_id: int,
        result_id: int,
        quiz_type: str,
        score: float,
        percentage: Optional[int] = None,
    ) -> None:
        """Track an accepted quiz submission."""
        AnalyticsTracker.track_event(
            EventType.QUIZ_SUBMITTED,
            learner_id=learner_id,
            properties={
                "result_id": result_id,
                "quiz_type": quiz_type,
                "score": score,
                "percentage": percentage,
            },
        )

    @staticmethod
    def track_quiz_rejected(learner_id: int, quiz_type: str, reason: str) -> None:
        """Track a submission rejected by the completion gate."""
        AnalyticsTracker.track_event(
            EventType.QUIZ_REJECTED,
            learner_id=learner_id,
            properties={"quiz_type": quiz_type, "reason": reason},
        )

    @staticmethod
    def track_path_assigned(learner_id: int, assigned_path: Optional[str]) -> None:
        """Track the one-time path assignment from an aptitude result."""
        AnalyticsTracker.track_event(
            EventType.PATH_ASSIGNED,
            learner_id=learner_id,
            properties={"assigned_path": assigned_path},
        )

    @staticmethod
    def track_unit_completed(
        learner_id: int, unit_id: str, completed_units_count: int
    ) -> None:
        """Track a unit newly added to the learner's completed units."""
        AnalyticsTracker.track_event(
            EventType.UNIT_COMPLETED,
            learner_id=learner_id,
            properties={
                "unit_id": unit_id,
                "completed_units_count": completed_units_count,
            },
        )

    @staticmethod
    def track_progress_update_failed(
        learner_id: int, result_id: int, error_message: str
    ) -> None:
        """Track a persisted result whose progress update failed."""
        AnalyticsTracker.track_event(
            EventType.PROGRESS_UPDATE_FAILED,
            learner_id=learner_id,
            properties={"result_id": result_id, "error_message": error_message},
            level=logging.ERROR,
        )

    @staticmethod
    def track_api_error(
        method: str,
        path: str,
        error_type: str,
        error_message: str,
        learner_id: Optional[int] = None,
    ) -> None:
        """Track API error."""
        AnalyticsTracker.track_event(
            EventType.API_ERROR,
            learner_id=learner_id,
            properties={
                "method": method,
                "path": path,
                "error_type": error_type,
                "error_message": error_message,
            },
        )
