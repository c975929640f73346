"""
Liveness endpoints.
"""
from fastapi import APIRouter, Request

from quizprogress.core import settings
from quizprogress.core.datetime_utils import utc_now

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Report service liveness and whether answer keys are loaded.

    Submissions cannot be scored until the answer keys are loaded, so the
    service reports "degraded" until then.
    """
    keys_loaded = getattr(request.app.state, "answer_keys", None) is not None
    return {
        "status": "healthy" if keys_loaded else "degraded",
        "answer_keys_loaded": keys_loaded,
        "timestamp": utc_now().isoformat(),
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@router.get("/ping")
async def ping():
    return {"message": "pong"}
