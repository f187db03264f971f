"""
Shipping Schemas

Pydantic models for shipping API requests and responses. Wire names are
camelCase to match the frontend.
"""
from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ==================== Quote Schemas ====================


class FedexConfig(BaseModel):
    """FedEx account credentials supplied by the caller."""
    model_config = ConfigDict(populate_by_name=True)

    account_number: str = Field(..., alias="accountNumber", min_length=8, max_length=12)
    client_id: str = Field(..., alias="clientId", min_length=10)
    client_secret: str = Field(..., alias="clientSecret", min_length=20)

    @field_validator("account_number")
    @classmethod
    def validate_account_number(cls, v):
        if not v.isdigit():
            raise ValueError("Account number must be 8-12 digits")
        return v


class CalculateShippingRequest(BaseModel):
    """
    Request body for POST /api/calculate-shipping.

    Documentation model: the endpoint validates the raw body itself so
    that errors come back in the shipping error envelope.
    """
    model_config = ConfigDict(populate_by_name=True)

    collection: str = Field(..., min_length=1)
    size: str = Field(..., min_length=1)
    country: str = Field(..., min_length=2, max_length=2)
    postal_code: str = Field(..., alias="postalCode", min_length=3, max_length=10)
    origin_country: Optional[str] = Field(None, alias="originCountry", min_length=2, max_length=2)
    origin_postal_code: Optional[str] = Field(None, alias="originPostalCode")
    preferred_currency: Optional[str] = Field(None, alias="preferredCurrency", min_length=3, max_length=3)
    ship_date: Optional[str] = Field(None, alias="shipDate", pattern=r"^\d{4}-\d{2}-\d{2}$")
    session_id: Optional[str] = Field(None, alias="sessionId")
    fedex_config: Optional[FedexConfig] = Field(None, alias="fedexConfig")

    @field_validator("country", "origin_country", "preferred_currency")
    @classmethod
    def upper_codes(cls, v):
        return v.upper() if v else v


class RateResponse(BaseModel):
    """One normalized rate."""
    service: str
    cost: float = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)
    transitTime: str
    deliveryDate: Optional[str] = None


class ShippingQuoteResponse(BaseModel):
    success: Literal[True] = True
    rates: List[RateResponse]
    requestId: str


class ShippingErrorResponse(BaseModel):
    success: Literal[False] = False
    error: str
    requestId: str
    errorType: Optional[str] = None


# ==================== Credential Schemas ====================


class FedexConfigAction(BaseModel):
    """Request body for POST /api/fedex-config."""
    action: Literal["save", "get", "validate", "delete", "check-defaults"]
    config: Optional[FedexConfig] = None
    sessionId: Optional[str] = Field(None, max_length=128)


class FedexConfigResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    hasConfig: Optional[bool] = None
    isValid: Optional[bool] = None
    sessionId: Optional[str] = None
    config: Optional[dict] = None
    supportedCurrencies: Optional[List[str]] = None


class CredentialTestResponse(BaseModel):
    success: bool
    message: str
    accountVerified: bool
    authenticationPassed: bool
    requestId: str
