"""Request ID middleware for log correlation."""
import uuid
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
import structlog


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request ID (and the caller's user id) to every log line.

    This middleware:
    1. Uses the X-Request-ID header if provided by a proxy, otherwise generates a UUID
    2. Binds request_id, and user_id when X-User-Id is present, to structlog context
    3. Stores the request ID in request.state for route handlers
    4. Echoes the request ID in the response headers
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        user_id = request.headers.get("X-User-Id")
        if user_id:
            structlog.contextvars.bind_contextvars(user_id=user_id)

        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response
