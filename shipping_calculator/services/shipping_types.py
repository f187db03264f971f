"""
Value types shared by the rate pipeline.

All of these live for a single request only.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# cm^3 per kg, FedEx metric divisor
DIM_WEIGHT_DIVISOR = 5000


@dataclass(frozen=True)
class Address:
    """Country + postal code; all FedEx rating needs."""
    country_code: str
    postal_code: str

    def to_fedex_format(self) -> Dict[str, str]:
        return {"postalCode": self.postal_code, "countryCode": self.country_code}


@dataclass(frozen=True)
class PackageDimensions:
    """Actual weight and box size of one package."""
    weight_kg: float
    length_cm: float
    width_cm: float
    height_cm: float

    def __post_init__(self):
        for name in ("weight_kg", "length_cm", "width_cm", "height_cm"):
            value = getattr(self, name)
            if value is None or value <= 0:
                raise ValueError(f"{name} must be positive, got {value!r}")

    @property
    def dimensional_weight(self) -> float:
        return (self.length_cm * self.width_cm * self.height_cm) / DIM_WEIGHT_DIVISOR

    @property
    def billed_weight(self) -> float:
        return max(self.weight_kg, self.dimensional_weight)


def dimensional_weight(length_cm: float, width_cm: float, height_cm: float) -> float:
    return (length_cm * width_cm * height_cm) / DIM_WEIGHT_DIVISOR


def billed_weight(weight_kg: float, length_cm: float, width_cm: float, height_cm: float) -> float:
    return max(weight_kg, dimensional_weight(length_cm, width_cm, height_cm))


@dataclass(frozen=True)
class Credentials:
    """FedEx account credentials. Never printed: repr hides every field."""
    account_number: str = field(repr=False)
    client_id: str = field(repr=False)
    client_secret: str = field(repr=False)

    def masked(self) -> Dict[str, str]:
        """Display-safe view (last 4 of account, prefix of client id)."""
        return {
            "accountNumber": f"****{self.account_number[-4:]}",
            "clientId": f"{self.client_id[:4]}****",
            "clientSecret": "********",
        }


@dataclass(frozen=True)
class AccessToken:
    """Bearer token from the OAuth endpoint; used for one request then dropped."""
    token: str = field(repr=False)
    expires_in_seconds: int = 0
    token_type: str = "bearer"


@dataclass
class NormalizedRate:
    """One priced service option returned to the caller."""
    service: str
    cost: float
    currency: str
    transit_time: str = "Unknown"
    delivery_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "cost": self.cost,
            "currency": self.currency,
            "transitTime": self.transit_time,
            "deliveryDate": self.delivery_date,
        }
