"""
FedEx OAuth client.

Exchanges account credentials for a bearer token using the
client_credentials grant. A fresh token is fetched for every quote request;
nothing is cached between requests.
"""
import logging
from typing import Optional

import httpx

from shipping_calculator.core.config import settings
from shipping_calculator.core.exceptions import ErrorKind, ShippingError
from shipping_calculator.core.request_logger import RequestLogger, bind_logger
from shipping_calculator.core.retry import RetryOptions, retry_with_backoff
from shipping_calculator.services.shipping_types import AccessToken

logger = logging.getLogger(__name__)

OAUTH_TOKEN_PATH = "/oauth/token"

AUTH_RETRY_OPTIONS = RetryOptions(max_retries=3, base_delay_ms=1000, max_delay_ms=10000)

TIMEOUT_USER_MESSAGE = "Request timed out. Please try again."
UNAVAILABLE_USER_MESSAGE = "FedEx service temporarily unavailable. Please try again."


def classify_auth_failure(status_code: int, body_text: str) -> ShippingError:
    """Map a non-2xx OAuth response to a ShippingError."""
    message = f"FedEx OAuth failed: {status_code} - {body_text[:500]}"
    if status_code == 401:
        return ShippingError(
            ErrorKind.AUTHENTICATION,
            message,
            "Invalid FedEx credentials. Please check your API keys.",
        )
    if status_code == 403:
        return ShippingError(
            ErrorKind.AUTHORIZATION,
            message,
            "FedEx account not authorized for this operation.",
        )
    if status_code >= 500:
        return ShippingError(ErrorKind.NETWORK, message, UNAVAILABLE_USER_MESSAGE)
    return ShippingError(
        ErrorKind.API_RESPONSE,
        message,
        "Authentication error. Please try again or contact support.",
    )


class FedexAuthClient:
    """
    FedEx OAuth 2.0 token client.

    Usage:
        async with FedexAuthClient() as auth:
            token = await auth.get_access_token(client_id, client_secret, log)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_options: RetryOptions = AUTH_RETRY_OPTIONS,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.fedex_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.FEDEX_AUTH_TIMEOUT_SECONDS
        self.retry_options = retry_options
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        """Close the HTTP client if we created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "FedexAuthClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def get_access_token(
        self,
        client_id: str,
        client_secret: str,
        log: Optional[RequestLogger] = None,
    ) -> AccessToken:
        """
        Fetch a bearer token, retrying transient failures.

        Raises:
            ShippingError: AUTHENTICATION / AUTHORIZATION immediately,
                NETWORK / API_RESPONSE / TIMEOUT after retries are exhausted
        """
        log = bind_logger(logger, log)

        async def _request_token() -> AccessToken:
            return await self._request_token(client_id, client_secret, log)

        return await retry_with_backoff(_request_token, self.retry_options, "FedEx Authentication", log)

    async def _request_token(self, client_id: str, client_secret: str, log) -> AccessToken:
        client = await self._get_http_client()
        url = f"{self.base_url}{OAUTH_TOKEN_PATH}"
        log.info("Requesting FedEx access token", data={"url": url, "clientId": client_id})

        try:
            response = await client.post(
                url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": client_id,
                    "client_secret": client_secret,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise ShippingError(
                ErrorKind.TIMEOUT,
                f"FedEx authentication timed out after {self.timeout}s",
                TIMEOUT_USER_MESSAGE,
            ) from e
        except httpx.RequestError as e:
            raise ShippingError(
                ErrorKind.NETWORK,
                f"FedEx authentication network error: {type(e).__name__}: {e}",
                UNAVAILABLE_USER_MESSAGE,
            ) from e

        if not response.is_success:
            log.error(f"FedEx OAuth failed: {response.status_code}")
            raise classify_auth_failure(response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as e:
            raise ShippingError(
                ErrorKind.API_RESPONSE,
                "FedEx OAuth returned a non-JSON body",
                "Authentication error. Please try again.",
            ) from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise ShippingError(
                ErrorKind.API_RESPONSE,
                "No access token in FedEx OAuth response",
                "Authentication error. Please try again.",
            )

        try:
            expires_in = int(payload.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0

        log.info("FedEx access token obtained", data={"expires_in": expires_in})
        return AccessToken(
            token=access_token,
            expires_in_seconds=expires_in,
            token_type=payload.get("token_type") or "bearer",
        )
