"""
API v1 router combining all v1 endpoints.
"""
from fastapi import APIRouter
from quizprogress.api.v1 import health, learners, quiz

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(health.router, tags=["health"])
api_router.include_router(quiz.router, prefix="/quiz", tags=["quiz"])
api_router.include_router(learners.router, prefix="/learners", tags=["learners"])
