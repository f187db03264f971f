"""
Address validation for rate requests.

Only country and postal code matter for FedEx rating, so that is all we
check: ISO alpha-2 country codes and per-country postal code formats, with
a permissive fallback for countries we have no pattern for.
"""
import logging
import re
from typing import Dict, Optional, Pattern

from shipping_calculator.core.exceptions import ErrorKind, ShippingError
from shipping_calculator.core.request_logger import RequestLogger, bind_logger
from shipping_calculator.services.shipping_types import Address

logger = logging.getLogger(__name__)

COUNTRY_CODE_PATTERN = re.compile(r"^[A-Z]{2}$")
GENERIC_POSTAL_PATTERN = re.compile(r"^[A-Z0-9\s-]{3,10}$", re.IGNORECASE)

POSTAL_CODE_PATTERNS: Dict[str, Pattern] = {
    "US": re.compile(r"^\d{5}(-\d{4})?$"),
    "CA": re.compile(r"^[A-Z]\d[A-Z]\s?\d[A-Z]\d$", re.IGNORECASE),
    "GB": re.compile(r"^[A-Z]{1,2}\d[A-Z\d]?\s?\d[A-Z]{2}$", re.IGNORECASE),
    "DE": re.compile(r"^\d{5}$"),
    "FR": re.compile(r"^\d{5}$"),
    "IT": re.compile(r"^\d{5}$"),
    "ES": re.compile(r"^\d{5}$"),
    "NL": re.compile(r"^\d{4}\s?[A-Z]{2}$", re.IGNORECASE),
    "AU": re.compile(r"^\d{4}$"),
    "JP": re.compile(r"^\d{3}-\d{4}$"),
    "TH": re.compile(r"^\d{5}$"),
    "SG": re.compile(r"^\d{6}$"),
    "HK": re.compile(r"^\d{6}$"),
    "ID": re.compile(r"^\d{5}$"),
    "MY": re.compile(r"^\d{5}$"),
    "PH": re.compile(r"^\d{4}$"),
    "VN": re.compile(r"^\d{6}$"),
    "IN": re.compile(r"^\d{6}$"),
    "KR": re.compile(r"^\d{5}$"),
    "TW": re.compile(r"^\d{3}(\d{2})?$"),
    "CN": re.compile(r"^\d{6}$"),
    "BR": re.compile(r"^\d{5}-?\d{3}$"),
    "MX": re.compile(r"^\d{5}$"),
}


def normalize_country_code(country_code: str) -> str:
    return country_code.strip().upper()


def is_valid_country_code(country_code: str) -> bool:
    return bool(COUNTRY_CODE_PATTERN.match(country_code))


def is_valid_postal_code(postal_code: str, country_code: str) -> bool:
    pattern = POSTAL_CODE_PATTERNS.get(country_code, GENERIC_POSTAL_PATTERN)
    return bool(pattern.match(postal_code))


def validate_address(
    postal_code: str,
    country_code: str,
    log: Optional[RequestLogger] = None,
) -> Address:
    """
    Normalize and validate a destination address.

    Raises:
        ShippingError(VALIDATION): bad country code or postal code format
    """
    log = bind_logger(logger, log)
    country = normalize_country_code(country_code)
    postal = postal_code.strip()

    if not is_valid_country_code(country):
        raise ShippingError(
            ErrorKind.VALIDATION,
            f"Invalid country code: {country_code}",
            "Please select a valid destination country.",
        )

    if not is_valid_postal_code(postal, country):
        log.warning("Postal code validation failed", data={"postalCode": postal, "countryCode": country})
        raise ShippingError(
            ErrorKind.VALIDATION,
            f"Invalid postal code {postal} for country {country}",
            f"Please enter a valid postal code for {country}.",
        )

    return Address(country_code=country, postal_code=postal)


def validate_origin_address(
    origin_country: Optional[str],
    origin_postal_code: Optional[str],
    default_country: str,
    default_postal_code: str,
) -> Address:
    """
    Origin address, falling back to the configured warehouse origin.

    Origins only get the generic postal check; they are ours, not the customer's.

    Raises:
        ShippingError(VALIDATION): non-string or malformed origin country or postal code
    """
    if origin_country is not None and not isinstance(origin_country, str):
        raise ShippingError(
            ErrorKind.VALIDATION,
            f"Origin country must be a string, got {type(origin_country).__name__}",
            "Origin country code must be 2 uppercase letters.",
        )
    if origin_postal_code is not None and not isinstance(origin_postal_code, str):
        raise ShippingError(
            ErrorKind.VALIDATION,
            f"Origin postal code must be a string, got {type(origin_postal_code).__name__}",
            "Origin postal code format is invalid.",
        )

    country = normalize_country_code(origin_country or default_country)
    postal = (origin_postal_code or default_postal_code).strip()

    if not is_valid_country_code(country):
        raise ShippingError(
            ErrorKind.VALIDATION,
            f"Invalid origin country code: {origin_country}",
            "Origin country code must be 2 uppercase letters.",
        )

    if not GENERIC_POSTAL_PATTERN.match(postal):
        raise ShippingError(
            ErrorKind.VALIDATION,
            f"Invalid origin postal code: {postal}",
            "Origin postal code format is invalid.",
        )

    return Address(country_code=country, postal_code=postal)
