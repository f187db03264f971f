"""
Inbound shipping request validation.

Works on the raw JSON body rather than a pydantic model so every failure
carries a user-facing message and the VALIDATION/CONFIGURATION kind the
caller expects (400/422), instead of FastAPI's generic 422.
"""
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional

from shipping_calculator.core.config import settings
from shipping_calculator.core.exceptions import ErrorKind, ShippingError
from shipping_calculator.core.request_logger import RequestLogger, bind_logger
from shipping_calculator.services.address_validator import validate_address, validate_origin_address
from shipping_calculator.services.currency import validate_currency
from shipping_calculator.services.shipping_types import Address, Credentials

logger = logging.getLogger(__name__)

ACCOUNT_NUMBER_PATTERN = re.compile(r"^\d{8,12}$")
SHIP_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MIN_CLIENT_ID_LENGTH = 10
MIN_CLIENT_SECRET_LENGTH = 20

REQUIRED_FIELDS = ("collection", "size", "country", "postalCode")


@dataclass(frozen=True)
class ValidatedShippingRequest:
    collection: str
    size: str
    destination: Address
    origin: Address
    preferred_currency: Optional[str] = None
    ship_date: Optional[str] = None
    credentials: Optional[Credentials] = None
    session_id: Optional[str] = None


def _validation_error(message: str, user_message: str) -> ShippingError:
    return ShippingError(ErrorKind.VALIDATION, message, user_message)


def _require_text(body: Dict[str, Any], key: str, user_message: str) -> str:
    value = body.get(key)
    if not isinstance(value, str) or not value.strip():
        raise _validation_error(f"Invalid {key}", user_message)
    return value.strip()


def validate_fedex_config(config: Any) -> Credentials:
    """
    Check caller-supplied FedEx credentials.

    Raises:
        ShippingError(CONFIGURATION): structure incomplete or malformed
    """
    if not isinstance(config, dict):
        raise ShippingError(
            ErrorKind.CONFIGURATION,
            "Invalid FedEx configuration structure",
            "FedEx configuration is invalid.",
        )

    account_number = config.get("accountNumber")
    client_id = config.get("clientId")
    client_secret = config.get("clientSecret")

    if not account_number or not client_id or not client_secret:
        raise ShippingError(
            ErrorKind.CONFIGURATION,
            "Incomplete FedEx configuration",
            "FedEx configuration is incomplete. Please check your API credentials.",
        )

    if not isinstance(account_number, str) or not ACCOUNT_NUMBER_PATTERN.match(account_number.strip()):
        raise ShippingError(
            ErrorKind.CONFIGURATION,
            "Invalid FedEx account number format",
            "FedEx account number must be 8-12 digits.",
        )

    if not isinstance(client_id, str) or len(client_id.strip()) < MIN_CLIENT_ID_LENGTH:
        raise ShippingError(
            ErrorKind.CONFIGURATION,
            "Invalid FedEx client ID format",
            "FedEx client ID is invalid.",
        )

    if not isinstance(client_secret, str) or len(client_secret.strip()) < MIN_CLIENT_SECRET_LENGTH:
        raise ShippingError(
            ErrorKind.CONFIGURATION,
            "Invalid FedEx client secret format",
            "FedEx client secret is invalid.",
        )

    return Credentials(
        account_number=account_number.strip(),
        client_id=client_id.strip(),
        client_secret=client_secret.strip(),
    )


def _validate_ship_date(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, str) or not SHIP_DATE_PATTERN.match(value.strip()):
        raise _validation_error(
            f"Invalid ship date: {value!r}",
            "Please enter the ship date as YYYY-MM-DD.",
        )
    try:
        date.fromisoformat(value.strip())
    except ValueError as e:
        raise _validation_error(
            f"Invalid ship date: {value!r}",
            "Please enter the ship date as YYYY-MM-DD.",
        ) from e
    return value.strip()


def validate_shipping_request(
    body: Any,
    log: Optional[RequestLogger] = None,
) -> ValidatedShippingRequest:
    """
    Validate and normalize a calculate-shipping request body.

    Raises:
        ShippingError(VALIDATION): missing or malformed request fields
        ShippingError(CONFIGURATION): malformed fedexConfig
    """
    log = bind_logger(logger, log)

    if not isinstance(body, dict):
        raise _validation_error(
            "Request body must be a JSON object",
            "Please fill in all required shipping information.",
        )

    log.info(
        "Validating shipping request",
        data={
            "hasCollection": bool(body.get("collection")),
            "hasSize": bool(body.get("size")),
            "hasCountry": bool(body.get("country")),
            "hasPostalCode": bool(body.get("postalCode")),
            "hasFedexConfig": bool(body.get("fedexConfig")),
        },
    )

    if any(not body.get(key) for key in REQUIRED_FIELDS):
        raise _validation_error(
            "Missing required fields",
            "Please fill in all required shipping information.",
        )

    collection = _require_text(body, "collection", "Please select a valid collection.")
    size = _require_text(body, "size", "Please select a valid size.")
    country = _require_text(body, "country", "Please select a valid destination country.")
    postal_code = _require_text(body, "postalCode", "Please enter a valid postal code.")

    preferred_currency = body.get("preferredCurrency")
    if preferred_currency in (None, ""):
        preferred_currency = None
    elif not isinstance(preferred_currency, str) or not preferred_currency.strip():
        raise _validation_error(
            f"Invalid preferred currency: {preferred_currency!r}",
            "Please select a valid currency or leave blank for auto-selection.",
        )
    else:
        preferred_currency = preferred_currency.strip()
        # Passed through as-is; FedEx answers unsupported codes with a 400
        if not validate_currency(preferred_currency):
            log.warning("Preferred currency is not a 3-letter code", data={"preferredCurrency": preferred_currency})

    destination = validate_address(postal_code, country, log)
    origin = validate_origin_address(
        body.get("originCountry"),
        body.get("originPostalCode"),
        settings.SHIPPING_ORIGIN_COUNTRY,
        settings.SHIPPING_ORIGIN_POSTAL_CODE,
    )

    credentials = None
    if body.get("fedexConfig") is not None:
        credentials = validate_fedex_config(body["fedexConfig"])

    session_id = body.get("sessionId")
    if not isinstance(session_id, str) or not session_id.strip():
        session_id = None

    log.info("Shipping request validation successful")
    return ValidatedShippingRequest(
        collection=collection,
        size=size,
        destination=destination,
        origin=origin,
        preferred_currency=preferred_currency,
        ship_date=_validate_ship_date(body.get("shipDate")),
        credentials=credentials,
        session_id=session_id.strip() if session_id else None,
    )
