"""
api-logger: Request ID Middleware
=================================

What:  Makes sure every request carries an `X-Request-ID`, so every log record
       has a `requestId` to correlate on.
How:   Reuses the client's header if present, otherwise generates a short UUID.
       The id is stored in a ContextVar, written into the request headers the
       downstream app (and `ApiLoggerMiddleware`) sees, and echoed back on the
       response.
When:  Register it *outside* `ApiLoggerMiddleware` (added after it), so the
       logger sees the injected header.

    app.add_middleware(ApiLoggerMiddleware)
    app.add_middleware(RequestIDMiddleware)
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def generate_request_id() -> str:
    return str(uuid.uuid4())[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Assigns a request id to each request.

    Behavior:
        1. Use the client's X-Request-ID header if present
        2. Otherwise generate one and add it to the request's headers
        3. Store it in `request_id_var` and `request.state.request_id`
        4. Return it in the X-Request-ID response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER)
        if not rid:
            rid = generate_request_id()
            request.scope["headers"] = [
                *request.scope.get("headers", []),
                (REQUEST_ID_HEADER.lower().encode("latin-1"), rid.encode("latin-1")),
            ]

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
