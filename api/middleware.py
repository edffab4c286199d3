"""Request context middleware using ContextVar.

Takes the request id from the X-Request-ID header (or generates one) and
stores it in a ContextVar so that every log record written while serving
the request carries it. The id is echoed back on the response.
"""

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.observability.logging_setup import request_id_var

REQUEST_ID_HEADER = "X-Request-ID"


def get_current_request_id() -> str:
    """Return the request id for the current request ("-" outside one)."""
    return request_id_var.get()


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the current task.

    Priority:
    1. X-Request-ID header (explicit, e.g. from a proxy)
    2. Freshly generated hex uuid
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_var.reset(token)
