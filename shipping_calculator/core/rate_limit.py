"""
Rate limiting configuration

Uses SlowAPI for in-memory rate limiting. Every quote request costs two
outbound FedEx calls, so the quote and credential endpoints get their own
limits.
"""
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from shipping_calculator.core.config import settings
from shipping_calculator.core.request_utils import extract_client_ip, get_request_id

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Client IP, respecting X-Forwarded-For for proxied requests."""
    return extract_client_ip(request) or get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    enabled=settings.RATE_LIMIT_ENABLED,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return the shipping error envelope with a Retry-After header."""
    logger.warning(
        f"Rate limit exceeded: {get_client_ip(request)} on {request.url.path}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "Too many requests. Please wait a moment and try again.",
            "requestId": get_request_id(request),
            "errorType": "RATE_LIMITED",
        },
        headers={"Retry-After": "60"},
    )


def get_quote_limit():
    """Rate limit for shipping quote endpoints."""
    return limiter.limit(settings.RATE_LIMIT_QUOTE)


def get_credentials_limit():
    """Rate limit for credential management endpoints (stricter)."""
    return limiter.limit(settings.RATE_LIMIT_CREDENTIALS)
