"""
Error handling and sanitization middleware

Anything that escapes the route handlers is logged in full and answered with
the same envelope the shipping endpoints use, so no stack trace, SQL text or
credential fragment ever reaches the client.
"""
import logging
import traceback
from typing import Union

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shipping_calculator.core.config import settings
from shipping_calculator.core.exceptions import GENERIC_USER_MESSAGE
from shipping_calculator.core.request_utils import get_request_id

logger = logging.getLogger(__name__)

# Patterns that indicate internal/sensitive error information
SENSITIVE_PATTERNS = [
    "password",
    "secret",
    "token",
    "key",
    "credential",
    "client_id",
    "account",
    "sqlalchemy",
    "asyncpg",
    "postgresql",
    "traceback",
    "file \"",
    "line ",
]


def is_sensitive_error(message: str) -> bool:
    """Check if error message contains sensitive information."""
    message_lower = message.lower()
    return any(pattern in message_lower for pattern in SENSITIVE_PATTERNS)


def sanitize_error_message(error: Union[str, Exception]) -> str:
    """
    Sanitize an error message for safe client exposure.

    Args:
        error: The error string or exception

    Returns:
        Sanitized error message safe for client
    """
    message = error if isinstance(error, str) else str(error)

    if settings.DEBUG:
        return message

    if is_sensitive_error(message):
        return GENERIC_USER_MESSAGE

    if len(message) > 200:
        return message[:200] + "..."

    return message


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """
    Catch unhandled exceptions and return a sanitized 500.

    - In production: Returns generic error, logs full details
    - In development: Returns the (sanitized) exception text for debugging
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except Exception as e:
            request_id = get_request_id(request)
            logger.error(
                f"[{request_id}] Unhandled exception: {type(e).__name__}: {e}\n"
                f"Path: {request.url.path}\n"
                f"Method: {request.method}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            message = sanitize_error_message(e) if settings.DEBUG else GENERIC_USER_MESSAGE
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": message,
                    "requestId": request_id,
                },
            )
