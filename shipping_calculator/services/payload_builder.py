"""
FedEx Rate Quote request payload.

FedEx rejects quotes missing preferredCurrency, shipDateStamp or
packagingType, and is picky about where groupPackageCount sits, so the
payload is built in one place and checked by validate_payload() before it
is ever sent.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from shipping_calculator.core.request_logger import RequestLogger, bind_logger
from shipping_calculator.core.utils import utcnow
from shipping_calculator.services.shipping_types import Address, PackageDimensions

logger = logging.getLogger(__name__)

PICKUP_TYPE = "DROPOFF_AT_FEDEX_LOCATION"
PACKAGING_TYPE = "YOUR_PACKAGING"
RATE_REQUEST_TYPES = ["LIST", "ACCOUNT", "INCENTIVE"]
WEIGHT_UNITS = "KG"
DIMENSION_UNITS = "CM"

WEIGHT_PRECISION = 2
DIMENSION_PRECISION = 1


def rounded_measurements(dims: PackageDimensions) -> Dict[str, float]:
    """Billed weight and dimensions at the precision they are sent to FedEx."""
    return {
        "weight": round(dims.billed_weight, WEIGHT_PRECISION),
        "length": round(dims.length_cm, DIMENSION_PRECISION),
        "width": round(dims.width_cm, DIMENSION_PRECISION),
        "height": round(dims.height_cm, DIMENSION_PRECISION),
    }


def generate_ship_date_stamp(now: Optional[datetime] = None) -> str:
    """Tomorrow (UTC) as YYYY-MM-DD."""
    now = now or utcnow()
    return (now + timedelta(days=1)).date().isoformat()


def build_rate_payload(
    account_number: str,
    dims: PackageDimensions,
    origin: Address,
    destination: Address,
    currency: str,
    ship_date_stamp: Optional[str] = None,
    rate_request_types: Optional[List[str]] = None,
    log: Optional[RequestLogger] = None,
) -> Dict[str, Any]:
    """
    Build the Rate Quote request body.

    Args:
        account_number: FedEx account the quote is rated against
        dims: Package measurements; billed weight is what gets sent
        origin: Shipper address
        destination: Recipient address
        currency: preferredCurrency
        ship_date_stamp: YYYY-MM-DD, defaults to tomorrow
        rate_request_types: Override of LIST/ACCOUNT/INCENTIVE

    Returns:
        JSON-serializable payload dict
    """
    log = bind_logger(logger, log)
    ship_date_stamp = ship_date_stamp or generate_ship_date_stamp()
    measured = rounded_measurements(dims)

    payload = {
        "accountNumber": {"value": account_number},
        "requestedShipment": {
            "shipper": {"address": origin.to_fedex_format()},
            "recipient": {"address": destination.to_fedex_format()},
            "preferredCurrency": currency,
            "shipDateStamp": ship_date_stamp,
            "pickupType": PICKUP_TYPE,
            "packagingType": PACKAGING_TYPE,
            "rateRequestType": list(rate_request_types or RATE_REQUEST_TYPES),
            "requestedPackageLineItems": [
                {
                    "groupPackageCount": 1,
                    "weight": {"units": WEIGHT_UNITS, "value": measured["weight"]},
                    "dimensions": {
                        "length": measured["length"],
                        "width": measured["width"],
                        "height": measured["height"],
                        "units": DIMENSION_UNITS,
                    },
                }
            ],
        },
    }

    log.info(
        "Built FedEx rate payload",
        data={
            "accountNumber": account_number,
            "origin": origin.to_fedex_format(),
            "destination": destination.to_fedex_format(),
            "currency": currency,
            "shipDateStamp": ship_date_stamp,
            "actualWeight": dims.weight_kg,
            "dimensionalWeight": round(dims.dimensional_weight, 3),
            "billedWeight": measured["weight"],
        },
    )
    return payload


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _has_address(party: Any) -> bool:
    if not isinstance(party, dict):
        return False
    address = party.get("address")
    return isinstance(address, dict) and bool(address.get("postalCode")) and bool(address.get("countryCode"))


def _is_valid_ship_date(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _is_valid_line_item(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    weight = item.get("weight")
    dimensions = item.get("dimensions")
    if not isinstance(weight, dict) or not _is_positive_number(weight.get("value")):
        return False
    if not isinstance(dimensions, dict):
        return False
    return all(_is_positive_number(dimensions.get(key)) for key in ("length", "width", "height"))


def validate_payload(payload: Any, log: Optional[RequestLogger] = None) -> bool:
    """
    Check a payload has everything FedEx requires before sending it.

    Returns:
        False (and logs which part failed) instead of raising
    """
    log = bind_logger(logger, log)

    def _fail(reason: str) -> bool:
        log.error(f"Rate payload validation failed: {reason}")
        return False

    if not isinstance(payload, dict):
        return _fail("payload is not an object")

    account = payload.get("accountNumber")
    if not isinstance(account, dict) or not account.get("value"):
        return _fail("missing account number")

    shipment = payload.get("requestedShipment")
    if not isinstance(shipment, dict):
        return _fail("missing requestedShipment")

    if not _has_address(shipment.get("shipper")):
        return _fail("incomplete shipper address")
    if not _has_address(shipment.get("recipient")):
        return _fail("incomplete recipient address")

    if not shipment.get("preferredCurrency"):
        return _fail("missing preferredCurrency")
    if not _is_valid_ship_date(shipment.get("shipDateStamp")):
        return _fail("missing or malformed shipDateStamp")
    if not shipment.get("pickupType"):
        return _fail("missing pickupType")
    if not shipment.get("packagingType"):
        return _fail("missing packagingType")

    rate_types = shipment.get("rateRequestType")
    if not isinstance(rate_types, list) or not rate_types:
        return _fail("missing rateRequestType")

    line_items = shipment.get("requestedPackageLineItems")
    if not isinstance(line_items, list) or not line_items:
        return _fail("no package line items")
    if not all(_is_valid_line_item(item) for item in line_items):
        return _fail("package line item missing positive weight or dimensions")

    return True
