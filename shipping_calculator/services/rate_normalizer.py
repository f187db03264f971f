"""
FedEx rate reply normalization.

FedEx reports the same money in several shapes depending on rate type and
service. Amount extraction is a fixed, ordered list of small extractor
functions, each looking at one location on a shipment detail and returning
an Amount or None:

    1. detail.totalNetCharge
    2. detail.shipmentRateDetail.totalNetCharge
    3. detail.ratedPackages[].packageRateDetail.netCharge
    4. detail.totalNetFedExCharge / detail.totalNetChargeWithDutiesAndTaxes

Each location may hold a bare number, a numeric string, or an
{amount} / {value} wrapper (possibly nested). Anything non-numeric,
non-finite or <= 0 once rounded to cents is rejected.
"""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from shipping_calculator.core.exceptions import ErrorKind, ShippingError
from shipping_calculator.core.request_logger import RequestLogger, bind_logger
from shipping_calculator.services.shipping_types import NormalizedRate

logger = logging.getLogger(__name__)

UNKNOWN_SERVICE = "Unknown Service"
UNKNOWN_TRANSIT_TIME = "Unknown"
LIST_RATE_TYPES = ("LIST", "RATED_LIST_PACKAGE", "PAYOR_LIST_PACKAGE", "PAYOR_LIST_SHIPMENT")
ALTERNATE_TOTAL_FIELDS = ("totalNetFedExCharge", "totalNetChargeWithDutiesAndTaxes")

COST_PRECISION = 2

DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

NO_RATES_USER_MESSAGE = (
    "No shipping options available for this destination. "
    "This could be due to service availability or account restrictions."
)

# Guard against unbounded wrapper nesting in malformed replies
_MAX_UNWRAP_DEPTH = 4


@dataclass(frozen=True)
class Amount:
    value: float
    currency: Optional[str] = None


def unwrap_amount(raw: Any, depth: int = 0) -> Optional[Amount]:
    """
    Turn a number, numeric string or {amount}/{value} wrapper into an Amount.

    Returns:
        Amount with a positive finite value, or None
    """
    if raw is None or isinstance(raw, bool) or depth > _MAX_UNWRAP_DEPTH:
        return None

    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    elif isinstance(raw, dict):
        currency = raw.get("currency") if isinstance(raw.get("currency"), str) else None
        for key in ("amount", "value"):
            if raw.get(key) is not None:
                inner = unwrap_amount(raw[key], depth + 1)
                if inner is None:
                    return None
                return Amount(inner.value, inner.currency or currency)
        return None
    else:
        return None

    if not math.isfinite(value):
        return None
    # Judged at the precision the caller is shown
    value = round(value, COST_PRECISION)
    if value <= 0:
        return None
    return Amount(value)


# =============================================================================
# AMOUNT EXTRACTORS (priority order)
# =============================================================================

def _with_fallback_currency(amount: Optional[Amount], container: Dict[str, Any]) -> Optional[Amount]:
    if amount is None or amount.currency:
        return amount
    currency = container.get("currency")
    if isinstance(currency, str) and currency.strip():
        return Amount(amount.value, currency.strip())
    return amount


def extract_total_net_charge(detail: Dict[str, Any]) -> Optional[Amount]:
    return _with_fallback_currency(unwrap_amount(detail.get("totalNetCharge")), detail)


def extract_shipment_rate_net_charge(detail: Dict[str, Any]) -> Optional[Amount]:
    rate_detail = detail.get("shipmentRateDetail")
    if not isinstance(rate_detail, dict):
        return None
    amount = _with_fallback_currency(unwrap_amount(rate_detail.get("totalNetCharge")), rate_detail)
    return _with_fallback_currency(amount, detail)


def extract_package_net_charge(detail: Dict[str, Any]) -> Optional[Amount]:
    packages = detail.get("ratedPackages")
    if not isinstance(packages, list):
        return None
    for package in packages:
        if not isinstance(package, dict):
            continue
        rate_detail = package.get("packageRateDetail")
        if not isinstance(rate_detail, dict):
            continue
        amount = _with_fallback_currency(unwrap_amount(rate_detail.get("netCharge")), rate_detail)
        if amount is not None:
            return _with_fallback_currency(amount, detail)
    return None


def extract_alternate_total(detail: Dict[str, Any]) -> Optional[Amount]:
    for field_name in ALTERNATE_TOTAL_FIELDS:
        amount = _with_fallback_currency(unwrap_amount(detail.get(field_name)), detail)
        if amount is not None:
            return amount
    return None


AMOUNT_EXTRACTORS: Tuple[Callable[[Dict[str, Any]], Optional[Amount]], ...] = (
    extract_total_net_charge,
    extract_shipment_rate_net_charge,
    extract_package_net_charge,
    extract_alternate_total,
)


def extract_amount(detail: Any) -> Optional[Amount]:
    """First amount any extractor finds on a shipment detail."""
    if not isinstance(detail, dict):
        return None
    for extractor in AMOUNT_EXTRACTORS:
        amount = extractor(detail)
        if amount is not None:
            return amount
    return None


# =============================================================================
# TRANSIT TIME / DELIVERY DATE
# =============================================================================

def format_delivery_date(raw: Optional[str]) -> Optional[str]:
    """
    Render ISO dates/timestamps as "Mon, Jun 2"; leave day names and
    unparseable text untouched.
    """
    if not raw:
        return None
    if any(day in raw for day in DAY_NAMES):
        return raw
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        try:
            parsed = date.fromisoformat(raw[:10])
        except ValueError:
            return raw
    return f"{parsed.strftime('%a')}, {parsed.strftime('%b')} {parsed.day}"


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_delivery_info(reply_detail: Dict[str, Any]) -> Tuple[str, Optional[str]]:
    """
    Transit time and delivery date from the reply detail's top level,
    operationalDetail and commit blocks. Later blocks override transit
    time; the first delivery date found wins.
    """
    transit_time = _text(reply_detail.get("transitTime"))
    delivery_date = format_delivery_date(_text(reply_detail.get("deliveryTimestamp")))

    operational = reply_detail.get("operationalDetail")
    if isinstance(operational, dict):
        transit_time = _text(operational.get("transitTime")) or transit_time
        if not delivery_date:
            delivery_date = format_delivery_date(_text(operational.get("deliveryDate")))
        if not delivery_date:
            delivery_date = _text(operational.get("deliveryDay")) or _text(operational.get("deliveryDayOfWeek"))

    commit = reply_detail.get("commit")
    if isinstance(commit, dict):
        transit_time = _text(commit.get("label")) or _text(commit.get("transitTime")) or transit_time
        date_detail = commit.get("dateDetail")
        if not delivery_date and isinstance(date_detail, dict):
            delivery_date = (
                format_delivery_date(_text(date_detail.get("dayFormat")))
                or _text(date_detail.get("dayOfWeek"))
                or format_delivery_date(_text(date_detail.get("dayCxsFormat")))
            )

    return transit_time or UNKNOWN_TRANSIT_TIME, delivery_date


# =============================================================================
# NORMALIZATION
# =============================================================================

def _ordered_shipment_details(details: List[Any]) -> List[Dict[str, Any]]:
    """LIST-priced details first, then the rest in reply order."""
    dicts = [d for d in details if isinstance(d, dict)]
    listed = [d for d in dicts if d.get("rateType") in LIST_RATE_TYPES]
    others = [d for d in dicts if d.get("rateType") not in LIST_RATE_TYPES]
    return listed + others


def normalize_reply_detail(
    reply_detail: Dict[str, Any],
    fallback_currency: str,
    log=None,
) -> Optional[NormalizedRate]:
    """One NormalizedRate for a service, or None if no detail has a usable amount."""
    log = log or logger
    service = _text(reply_detail.get("serviceType")) or _text(reply_detail.get("serviceName")) or UNKNOWN_SERVICE

    details = reply_detail.get("ratedShipmentDetails")
    if not isinstance(details, list) or not details:
        log.warning(f"No ratedShipmentDetails for {service}")
        return None

    for detail in _ordered_shipment_details(details):
        amount = extract_amount(detail)
        if amount is None:
            log.debug(f"Skipping {service} {detail.get('rateType')} detail: no positive amount")
            continue

        transit_time, delivery_date = extract_delivery_info(reply_detail)
        return NormalizedRate(
            service=service,
            cost=amount.value,
            currency=(amount.currency or fallback_currency).upper(),
            transit_time=transit_time,
            delivery_date=delivery_date,
        )

    log.warning(f"No valid amount for {service} in any shipment detail")
    return None


def normalize_rates(
    reply: Any,
    fallback_currency: str,
    log: Optional[RequestLogger] = None,
) -> List[NormalizedRate]:
    """
    Convert a raw FedEx rate reply into NormalizedRate records.

    Raises:
        ShippingError(RATE_PARSING): no rateReplyDetails list, or no usable rates at all
    """
    log = bind_logger(logger, log)

    output = reply.get("output") if isinstance(reply, dict) else None
    reply_details = output.get("rateReplyDetails") if isinstance(output, dict) else None
    if not isinstance(reply_details, list):
        log.error("Invalid FedEx response structure", data={"keys": sorted(reply) if isinstance(reply, dict) else None})
        raise ShippingError(
            ErrorKind.RATE_PARSING,
            "Invalid response structure from FedEx: missing output.rateReplyDetails",
            "Unable to parse shipping rates. Please try again.",
        )

    rates = []
    for reply_detail in reply_details:
        if not isinstance(reply_detail, dict):
            continue
        rate = normalize_reply_detail(reply_detail, fallback_currency, log)
        if rate is not None:
            rates.append(rate)

    if not rates:
        raise ShippingError(
            ErrorKind.RATE_PARSING,
            "No shipping rates available for this destination",
            NO_RATES_USER_MESSAGE,
            details={"replyDetailCount": len(reply_details)},
        )

    log.info(f"Normalized {len(rates)} FedEx rates", data=[rate.to_dict() for rate in rates])
    return rates
