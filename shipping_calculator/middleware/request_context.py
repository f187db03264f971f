"""
Request context middleware

Assigns every inbound request a correlation id (stored on request.state,
never in module state) and reports it with the request duration in the
response headers.
"""
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from shipping_calculator.core.request_utils import REQUEST_ID_HEADER, new_request_id

logger = logging.getLogger(__name__)

DURATION_HEADER = "x-request-duration"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach request_id / started_at to request.state and echo them back as headers."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.request_id = new_request_id()
        request.state.started_at = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - request.state.started_at) * 1000
        response.headers[REQUEST_ID_HEADER] = request.state.request_id
        response.headers[DURATION_HEADER] = f"{duration_ms:.1f}ms"
        logger.debug(
            f"[{request.state.request_id}] {request.method} {request.url.path} "
            f"-> {response.status_code} in {duration_ms:.1f}ms"
        )
        return response
