"""
Settlement currency resolution.

An explicit caller currency always wins (normalized to upper case, not
checked against FedEx's per-route list; FedEx itself rejects unsupported
ones with a 400). Otherwise the destination country decides, USD when the
country is unmapped.
"""
import re
from typing import Dict, List, Optional

DEFAULT_CURRENCY = "USD"

CURRENCY_BY_COUNTRY: Dict[str, str] = {
    "US": "USD",
    "CA": "CAD",
    "GB": "GBP",
    "DE": "EUR",
    "FR": "EUR",
    "IT": "EUR",
    "ES": "EUR",
    "NL": "EUR",
    "AT": "EUR",
    "BE": "EUR",
    "JP": "JPY",
    "AU": "AUD",
    "TH": "THB",
    "SG": "SGD",
    "HK": "HKD",
    "ID": "IDR",
    "MY": "MYR",
    "PH": "PHP",
    "VN": "VND",
    "IN": "INR",
    "KR": "KRW",
    "TW": "TWD",
    "CN": "CNY",
    "BR": "BRL",
    "MX": "MXN",
}

_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")


def resolve_currency(user_currency: Optional[str], destination_country: str) -> str:
    """
    Pick the preferredCurrency sent to FedEx.

    Args:
        user_currency: Caller's choice; blank or None means auto-select
        destination_country: ISO alpha-2 destination

    Returns:
        Upper-case 3-letter currency code
    """
    if isinstance(user_currency, str) and user_currency.strip():
        return user_currency.strip().upper()
    return suggest_currency(destination_country)


def suggest_currency(country_code: Optional[str]) -> str:
    """Default currency for a country, USD when unmapped."""
    if not country_code:
        return DEFAULT_CURRENCY
    return CURRENCY_BY_COUNTRY.get(country_code.strip().upper(), DEFAULT_CURRENCY)


def validate_currency(currency: Optional[str]) -> bool:
    """True for a well-formed 3-letter code (case-insensitive)."""
    if not isinstance(currency, str):
        return False
    return bool(_CURRENCY_CODE.match(currency.strip().upper()))


def supported_currencies() -> List[str]:
    return sorted(set(CURRENCY_BY_COUNTRY.values()))
