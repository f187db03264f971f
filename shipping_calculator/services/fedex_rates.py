"""
FedEx Rate Quote client.

Submits a validated payload and classifies failures. 400s are never retried;
FedEx's errors/messages array is kept in the error details.
"""
import json
import logging
from typing import Any, Dict, Optional

import httpx

from shipping_calculator.core.config import settings
from shipping_calculator.core.exceptions import ErrorKind, ShippingError
from shipping_calculator.core.request_logger import RequestLogger, bind_logger
from shipping_calculator.core.retry import RetryOptions, retry_with_backoff

logger = logging.getLogger(__name__)

RATE_QUOTE_PATH = "/rate/v1/rates/quotes"

RATE_RETRY_OPTIONS = RetryOptions(max_retries=3, base_delay_ms=2000, max_delay_ms=15000)


def _parse_json(response: httpx.Response) -> Optional[Any]:
    try:
        return response.json()
    except ValueError:
        return None


def classify_rate_failure(response: httpx.Response) -> ShippingError:
    """Map a non-2xx Rate Quote response to a ShippingError."""
    status = response.status_code
    body_text = response.text[:500]

    if status == 400:
        body = _parse_json(response)
        error_details = []
        if isinstance(body, dict):
            error_details = body.get("errors") or body.get("messages") or []
        message = (
            f"Validation error: {json.dumps(error_details, default=str)}"
            if error_details
            else "Invalid request parameters"
        )
        return ShippingError(
            ErrorKind.VALIDATION,
            message,
            "Invalid shipping parameters. Please check your destination details and try again.",
            details=error_details,
        )

    message = f"FedEx rate request failed: {status} - {body_text}"
    if status == 401:
        return ShippingError(
            ErrorKind.AUTHENTICATION,
            message,
            "Authentication expired. Please try again.",
        )
    if status == 403:
        return ShippingError(
            ErrorKind.AUTHORIZATION,
            message,
            "Account not authorized for shipping rates.",
        )
    if status >= 500:
        return ShippingError(
            ErrorKind.NETWORK,
            message,
            "FedEx service temporarily unavailable. Please try again.",
        )
    return ShippingError(
        ErrorKind.API_RESPONSE,
        message,
        "Rate calculation error. Please try again or contact support.",
    )


class FedexRateClient:
    """
    FedEx Rate Quote client.

    Usage:
        async with FedexRateClient() as rates:
            reply = await rates.request_rates(token, payload, log)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_options: RetryOptions = RATE_RETRY_OPTIONS,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.fedex_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.FEDEX_RATE_TIMEOUT_SECONDS
        self.retry_options = retry_options
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "FedexRateClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def request_rates(
        self,
        token: str,
        payload: Dict[str, Any],
        log: Optional[RequestLogger] = None,
    ) -> Dict[str, Any]:
        """
        POST the payload to the Rate Quote API.

        Returns:
            Raw FedEx reply (parsed JSON)

        Raises:
            ShippingError: classified per status code; TIMEOUT on client timeout
        """
        log = bind_logger(logger, log)

        async def _send() -> Dict[str, Any]:
            return await self._send(token, payload, log)

        return await retry_with_backoff(_send, self.retry_options, "FedEx Rate Request", log)

    async def _send(self, token: str, payload: Dict[str, Any], log) -> Dict[str, Any]:
        client = await self._get_http_client()
        url = f"{self.base_url}{RATE_QUOTE_PATH}"
        log.info("Requesting FedEx rates", data={"url": url, "payload": payload})

        try:
            response = await client.post(
                url,
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {token}",
                    "X-locale": "en_US",
                },
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise ShippingError(
                ErrorKind.TIMEOUT,
                f"FedEx rate request timed out after {self.timeout}s",
                "Request timed out. Please try again.",
            ) from e
        except httpx.RequestError as e:
            raise ShippingError(
                ErrorKind.NETWORK,
                f"FedEx rate request network error: {type(e).__name__}: {e}",
                "Unable to reach FedEx. Please check your connection and try again.",
            ) from e

        if not response.is_success:
            error = classify_rate_failure(response)
            log.error(f"FedEx rate request failed: {response.status_code}", data={"details": error.details})
            raise error

        body = _parse_json(response)
        if not isinstance(body, dict):
            raise ShippingError(
                ErrorKind.API_RESPONSE,
                "FedEx rate response was not a JSON object",
                "Rate calculation error. Please try again or contact support.",
            )

        log.info("FedEx rate response received", data={"transactionId": body.get("transactionId")})
        return body
