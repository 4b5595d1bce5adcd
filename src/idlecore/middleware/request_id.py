"""Request context middleware: request id and caller id on every log line."""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Propagate X-Request-Id and bind it, plus X-User-Id, to the structlog context."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        structlog.contextvars.clear_contextvars()
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        context = {"request_id": request_id}
        user_id = request.headers.get("X-User-Id")
        if user_id:
            context["user_id"] = user_id
        structlog.contextvars.bind_contextvars(**context)

        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response
