"""
Shipping error taxonomy

Every failure in the rate pipeline is raised as a single ShippingError tagged
with an ErrorKind. Retry eligibility and the HTTP status returned to the caller
are derived from the kind here and nowhere else.

    ShippingError
        kind          ErrorKind (what went wrong)
        message       internal description, logged only
        user_message  safe to display to the caller
        details       optional diagnostic payload (upstream error arrays etc.)
"""
import enum
from typing import Any, Dict, Optional


class ErrorKind(str, enum.Enum):
    VALIDATION = "VALIDATION_ERROR"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    AUTHORIZATION = "AUTHORIZATION_ERROR"
    NETWORK = "NETWORK_ERROR"
    API_RESPONSE = "API_RESPONSE_ERROR"
    RATE_PARSING = "RATE_PARSING_ERROR"
    DATABASE = "DATABASE_ERROR"
    CONFIGURATION = "CONFIGURATION_ERROR"
    TIMEOUT = "TIMEOUT_ERROR"


_NON_RETRYABLE_KINDS = frozenset({
    ErrorKind.VALIDATION,
    ErrorKind.AUTHENTICATION,
    ErrorKind.AUTHORIZATION,
    ErrorKind.CONFIGURATION,
})

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.AUTHORIZATION: 401,
    ErrorKind.CONFIGURATION: 422,
    ErrorKind.TIMEOUT: 408,
}

GENERIC_USER_MESSAGE = "An unexpected error occurred. Please try again."


class ShippingError(Exception):
    """
    Error raised anywhere in the rate pipeline.

    Attributes:
        kind: ErrorKind driving retry and HTTP status decisions
        message: Internal description (never returned to the caller)
        user_message: Message safe to show the caller
        details: Optional upstream diagnostics
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        user_message: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        self.kind = kind
        self.message = message
        self.user_message = user_message or GENERIC_USER_MESSAGE
        self.details = details
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return is_retryable(self.kind)

    @property
    def status_code(self) -> int:
        return http_status_for(self.kind)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"ShippingError(kind={self.kind.value!r}, message={self.message!r})"


def new_shipping_error(
    kind: ErrorKind,
    message: str,
    user_message: str,
    details: Optional[Any] = None,
) -> ShippingError:
    return ShippingError(kind, message, user_message, details)


def is_retryable(kind: ErrorKind) -> bool:
    """Bad input and rejected credentials fail fast; everything else may be retried."""
    return kind not in _NON_RETRYABLE_KINDS


def http_status_for(kind: ErrorKind) -> int:
    return _STATUS_BY_KIND.get(kind, 500)
