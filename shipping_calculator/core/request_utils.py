"""
Request utility functions
"""
import secrets
import string
import time
from typing import Optional
from fastapi import Request

REQUEST_ID_HEADER = "x-request-id"
SESSION_ID_HEADER = "x-session-id"

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_request_id(prefix: str = "req") -> str:
    """Correlation id of the form ``req_<epoch ms>_<9 random chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def get_request_id(request: Request) -> str:
    """Request id assigned by RequestContextMiddleware, or a fresh one."""
    request_id = getattr(request.state, "request_id", None)
    return request_id or new_request_id()


def extract_client_ip(request: Request) -> Optional[str]:
    """
    Extract client IP from request, handling proxy headers.

    Checks X-Forwarded-For header first (for requests behind load balancers),
    then falls back to the direct client IP.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def extract_session_id(request: Request) -> Optional[str]:
    """Credential session id sent by the frontend, if any."""
    session_id = request.headers.get(SESSION_ID_HEADER)
    return session_id.strip() if session_id and session_id.strip() else None
