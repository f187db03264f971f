"""
Shipping quote orchestration.

One call to ShippingCalculator.handle() serves one inbound request:

    validate -> credentials -> dimensions -> currency -> authenticate
             -> build payload -> request rates -> normalize -> respond

This is the only place a ShippingError becomes an HTTP status and a
user-facing message.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from shipping_calculator.core.exceptions import (
    ErrorKind,
    GENERIC_USER_MESSAGE,
    ShippingError,
    http_status_for,
)
from shipping_calculator.core.request_logger import RequestLogger
from shipping_calculator.services.collection_service import DimensionLookup
from shipping_calculator.services.credential_store import FedexCredentialStore, default_credentials
from shipping_calculator.services.currency import resolve_currency
from shipping_calculator.services.fedex_auth import FedexAuthClient
from shipping_calculator.services.fedex_rates import FedexRateClient
from shipping_calculator.services.payload_builder import build_rate_payload, validate_payload
from shipping_calculator.services.rate_normalizer import normalize_rates
from shipping_calculator.services.request_validator import ValidatedShippingRequest, validate_shipping_request
from shipping_calculator.services.shipping_types import Credentials

logger = logging.getLogger(__name__)


def success_response(rates, request_id: str) -> Dict[str, Any]:
    return {
        "success": True,
        "rates": [rate.to_dict() for rate in rates],
        "requestId": request_id,
    }


def error_response(error: ShippingError, request_id: str) -> Tuple[int, Dict[str, Any]]:
    return http_status_for(error.kind), {
        "success": False,
        "error": error.user_message,
        "requestId": request_id,
        "errorType": error.kind.value,
    }


class ShippingCalculator:
    """
    FedEx quote pipeline for a single request.

    Collaborators are injected so tests can substitute mocks; when the FedEx
    clients are not injected they are created for the request and closed
    before handle() returns.
    """

    def __init__(
        self,
        dimension_lookup: DimensionLookup,
        credential_store: Optional[FedexCredentialStore] = None,
        auth_client: Optional[FedexAuthClient] = None,
        rate_client: Optional[FedexRateClient] = None,
    ):
        self.dimension_lookup = dimension_lookup
        self.credential_store = credential_store
        self.auth_client = auth_client
        self.rate_client = rate_client

    async def handle(
        self,
        body: Any,
        request_id: str,
        session_id: Optional[str] = None,
    ) -> Tuple[int, Dict[str, Any]]:
        """
        Quote shipping for a calculate-shipping request body.

        Returns:
            (HTTP status, response body)
        """
        log = RequestLogger(logger, request_id)
        log.info("Shipping calculation started")

        try:
            rates = await self._calculate(body, session_id, log)
        except ShippingError as e:
            log_method = log.warning if http_status_for(e.kind) < 500 else log.error
            log_method(f"Shipping calculation failed: {e.kind.value}: {e.message}", data={"details": e.details})
            return error_response(e, request_id)
        except Exception as e:
            log.exception(f"Unexpected error during shipping calculation: {type(e).__name__}")
            return 500, {
                "success": False,
                "error": GENERIC_USER_MESSAGE,
                "requestId": request_id,
            }

        log.info(f"Shipping calculation completed with {len(rates)} rates")
        return 200, success_response(rates, request_id)

    async def _calculate(self, body: Any, session_id: Optional[str], log: RequestLogger):
        request = validate_shipping_request(body, log)
        credentials = await self._resolve_credentials(request, session_id, log)

        dims = await self.dimension_lookup.get(request.collection, request.size, log)
        if dims is None:
            raise ShippingError(
                ErrorKind.VALIDATION,
                f"No dimensions for collection {request.collection} size {request.size}",
                "The selected artwork size is not available for shipping calculation.",
            )

        currency = resolve_currency(request.preferred_currency, request.destination.country_code)
        log.info("Currency resolved", data={"currency": currency, "requested": request.preferred_currency})

        auth_client = self.auth_client or FedexAuthClient()
        rate_client = self.rate_client or FedexRateClient()
        try:
            token = await auth_client.get_access_token(credentials.client_id, credentials.client_secret, log)

            payload = build_rate_payload(
                credentials.account_number,
                dims,
                request.origin,
                request.destination,
                currency,
                request.ship_date,
                log=log,
            )
            if not validate_payload(payload, log):
                raise ShippingError(
                    ErrorKind.VALIDATION,
                    "Built rate payload failed structure validation",
                    "Invalid shipping parameters. Please check your destination details and try again.",
                )

            reply = await rate_client.request_rates(token.token, payload, log)
        finally:
            if self.auth_client is None:
                await auth_client.close()
            if self.rate_client is None:
                await rate_client.close()

        return normalize_rates(reply, currency, log)

    async def _resolve_credentials(
        self,
        request: ValidatedShippingRequest,
        session_id: Optional[str],
        log: RequestLogger,
    ) -> Credentials:
        """Request credentials, then the saved session, then the service defaults."""
        if request.credentials is not None:
            log.info("Using request-supplied FedEx credentials")
            return request.credentials

        session_id = request.session_id or session_id
        if session_id and self.credential_store is not None:
            credentials = await self.credential_store.get(session_id, log)
            if credentials is not None:
                log.info("Using session FedEx credentials", data={"sessionId": session_id})
                return credentials
            log.warning("No FedEx credentials stored for session", data={"sessionId": session_id})

        credentials = default_credentials()
        if credentials is not None:
            log.info("Using default FedEx credentials")
            return credentials

        raise ShippingError(
            ErrorKind.CONFIGURATION,
            "No FedEx credentials supplied, stored or configured",
            "FedEx configuration is incomplete. Please check your API credentials.",
        )
