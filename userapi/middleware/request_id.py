"""
User API Backend — Request ID Middleware
==========================================

What:  Tags each request with a correlation ID and echoes it in the response.
Why:   The access log, the breadcrumb/controller logs and the error bodies
       all carry the same ID, so one request can be followed end to end.
How:   Reuses a client-supplied X-Request-ID (bounded length) or generates a
       short UUID, stores it in a ContextVar and on request.state.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
MAX_CLIENT_ID_LENGTH = 64

# Coroutine-local: concurrent requests share the thread, not the value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def _resolve_request_id(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if supplied and len(supplied) <= MAX_CLIENT_ID_LENGTH:
        return supplied
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns the request ID before any other processing."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = _resolve_request_id(request)
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
