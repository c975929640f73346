"""
Request/response logging middleware.
"""
import logging
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable

from quizprogress.core.logging_config import request_id_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs one line per incoming request and one per response.

    Every request gets a request id, taken from the X-Request-ID header when
    the client sends one. It is stored in request_id_context so all log
    records emitted while handling the request carry it, and it is echoed
    back on the response.
    """

    def __init__(self, app, slow_request_threshold: float = 1.0):
        """
        Args:
            app: ASGI application
            slow_request_threshold: Seconds after which a completed request
                is logged as a warning
        """
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    @staticmethod
    def _learner_identifier(request: Request) -> str:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            # Never log the full token
            return f"token:{auth_header[7:17]}..."
        user = request.query_params.get("user")
        if user:
            return f"user:{user}"
        return "anonymous"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_context.set(request_id)

        start_time = time.time()
        method = request.method
        path = str(request.url.path)
        client_host = request.client.host if request.client else "unknown"
        learner_identifier = self._learner_identifier(request)

        logger.info(
            "Incoming request",
            extra={
                "method": method,
                "path": path,
                "client_host": client_host,
                "user_identifier": learner_identifier,
            },
        )

        try:
            response = await call_next(request)

            duration_ms = round((time.time() - start_time) * 1000, 2)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id

            extra_fields = {
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "client_host": client_host,
                "user_identifier": learner_identifier,
            }

            if status_code >= 500:
                logger.error("Server error response", extra=extra_fields)
            elif status_code >= 400:
                logger.warning("Client error response", extra=extra_fields)
            elif duration_ms >= self.slow_request_threshold * 1000:
                logger.warning("Slow request", extra=extra_fields)
            else:
                logger.info("Request completed", extra=extra_fields)

            return response
        finally:
            request_id_context.reset(token)
