"""
Core module for application configuration and the submission engine.

Note: security and the engine modules are not imported at package level to
avoid circular imports with quizprogress.models. Import them directly:
from quizprogress.core.submission import ...
"""
from .config import settings

__all__ = ["settings"]
