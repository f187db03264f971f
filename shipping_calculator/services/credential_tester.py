"""
FedEx credential check.

Authenticates with the supplied credentials, then prices a small domestic
test parcel to see whether the account number is usable for rating. A
failed test quote only fails the check when FedEx blames the account;
anything else still counts as authenticated but unverified.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from shipping_calculator.core.exceptions import ErrorKind, ShippingError
from shipping_calculator.core.request_logger import RequestLogger, bind_logger
from shipping_calculator.core.retry import RetryOptions
from shipping_calculator.services.fedex_auth import FedexAuthClient
from shipping_calculator.services.fedex_rates import FedexRateClient
from shipping_calculator.services.payload_builder import build_rate_payload
from shipping_calculator.services.shipping_types import Address, Credentials, PackageDimensions

logger = logging.getLogger(__name__)

SINGLE_ATTEMPT = RetryOptions(max_retries=1, base_delay_ms=0, max_delay_ms=0)

TEST_ORIGIN = Address(country_code="TH", postal_code="10240")
TEST_DESTINATION = Address(country_code="TH", postal_code="10110")
TEST_PACKAGE = PackageDimensions(weight_kg=1, length_cm=10, width_cm=10, height_cm=10)
TEST_CURRENCY = "USD"

ACCOUNT_ERROR_MARKERS = ("ACCOUNT", "UNAUTHORIZED")


@dataclass
class CredentialTestResult:
    authentication_passed: bool
    account_verified: bool
    message: str


def _blames_account(details: Any) -> bool:
    if not isinstance(details, list):
        return False
    for error in details:
        code = error.get("code") if isinstance(error, dict) else None
        if isinstance(code, str) and any(marker in code for marker in ACCOUNT_ERROR_MARKERS):
            return True
    return False


class FedexCredentialTester:
    def __init__(
        self,
        auth_client: Optional[FedexAuthClient] = None,
        rate_client: Optional[FedexRateClient] = None,
    ):
        self.auth_client = auth_client or FedexAuthClient(retry_options=SINGLE_ATTEMPT)
        self.rate_client = rate_client or FedexRateClient(retry_options=SINGLE_ATTEMPT)

    async def close(self):
        await self.auth_client.close()
        await self.rate_client.close()

    async def test(self, credentials: Credentials, log: Optional[RequestLogger] = None) -> CredentialTestResult:
        """
        Raises:
            ShippingError: authentication failed, the account was rejected,
                or the test quote timed out
        """
        log = bind_logger(logger, log)
        log.info("Testing FedEx credentials", data={"accountNumber": credentials.account_number})

        token = await self.auth_client.get_access_token(
            credentials.client_id, credentials.client_secret, log
        )

        payload = build_rate_payload(
            credentials.account_number,
            TEST_PACKAGE,
            TEST_ORIGIN,
            TEST_DESTINATION,
            TEST_CURRENCY,
            rate_request_types=["LIST"],
            log=log,
        )

        try:
            await self.rate_client.request_rates(token.token, payload, log)
        except ShippingError as e:
            if e.kind in (ErrorKind.TIMEOUT, ErrorKind.AUTHORIZATION):
                raise
            if _blames_account(e.details):
                raise ShippingError(
                    ErrorKind.AUTHORIZATION,
                    "Account number is invalid or not authorized for API access",
                    "Account number is invalid or not authorized for FedEx API access.",
                    details=e.details,
                ) from e
            log.warning(f"Test rate request failed ({e.kind.value}); credentials authenticated but unverified")
            return CredentialTestResult(
                authentication_passed=True,
                account_verified=False,
                message="FedEx credentials authenticated, but the account could not be verified with a test rate request",
            )

        log.info("FedEx credential test successful")
        return CredentialTestResult(
            authentication_passed=True,
            account_verified=True,
            message="FedEx credentials are valid",
        )
