"""
Request-scoped logging

Each inbound request gets its own RequestLogger wrapping the module logger.
The request id lives on the adapter instance that is passed down the call
chain, so concurrent requests never share correlation state.

Structured data attached via ``data=`` is redacted before serialization:
any key whose name contains clientSecret, access_token, clientId or
accountNumber (case and separator insensitive) is replaced with [REDACTED],
recursively through dicts and lists.
"""
import json
import logging
from typing import Any, Optional

REDACTED = "[REDACTED]"

# Compared against keys lowercased with "_" and "-" removed
SENSITIVE_KEY_FRAGMENTS = ("clientsecret", "accesstoken", "clientid", "accountnumber")


def _is_sensitive_key(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    normalized = key.lower().replace("_", "").replace("-", "")
    return any(fragment in normalized for fragment in SENSITIVE_KEY_FRAGMENTS)


def redact_sensitive(data: Any) -> Any:
    """
    Return a copy of ``data`` with credential-bearing fields masked.

    Args:
        data: Any JSON-like value (dict, list, tuple, scalar)

    Returns:
        Redacted copy; the input is never mutated
    """
    if isinstance(data, dict):
        return {
            key: REDACTED if _is_sensitive_key(key) else redact_sensitive(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [redact_sensitive(item) for item in data]
    return data


class RequestLogger(logging.LoggerAdapter):
    """
    LoggerAdapter that prefixes messages with the request id and serializes
    redacted structured data.

    Usage:
        log = RequestLogger(logger, request_id)
        log.info("Rates received", data={"count": 3})
    """

    def __init__(self, logger: logging.Logger, request_id: Optional[str] = None):
        super().__init__(logger, {"request_id": request_id})
        self.request_id = request_id

    def process(self, msg, kwargs):
        data = kwargs.pop("data", None)
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("request_id", self.request_id)
        kwargs["extra"] = extra
        if data is not None:
            msg = f"{msg} | {json.dumps(redact_sensitive(data), default=str)}"
        if self.request_id:
            msg = f"[{self.request_id}] {msg}"
        return msg, kwargs

    def for_logger(self, logger: logging.Logger) -> "RequestLogger":
        """Same request id, different module logger."""
        return RequestLogger(logger, self.request_id)


def bind_logger(logger: logging.Logger, log: Optional[RequestLogger]) -> RequestLogger:
    """Attach a module logger to the caller's request context, if any."""
    if log is None:
        return RequestLogger(logger)
    return log.for_logger(logger)
