"""
Tests for the FedEx OAuth client.
"""
from urllib.parse import parse_qs

import httpx
import pytest

from shipping_calculator.core.exceptions import ErrorKind, ShippingError
from shipping_calculator.services.fedex_auth import FedexAuthClient

BASE_URL = "https://fedex.test"


def _client(handler, retry_options) -> FedexAuthClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FedexAuthClient(base_url=BASE_URL, retry_options=retry_options, http_client=http_client)


@pytest.mark.asyncio
async def test_token_request_is_form_encoded_client_credentials(no_delay_retry):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["content_type"] = request.headers["content-type"]
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"access_token": "tok-123", "token_type": "bearer", "expires_in": 3599})

    client = _client(handler, no_delay_retry)
    token = await client.get_access_token("client-id-123", "client-secret-abcdefghijkl")

    assert token.token == "tok-123"
    assert token.expires_in_seconds == 3599
    assert seen["url"] == "https://fedex.test/oauth/token"
    assert seen["content_type"].startswith("application/x-www-form-urlencoded")
    assert seen["form"] == {
        "grant_type": ["client_credentials"],
        "client_id": ["client-id-123"],
        "client_secret": ["client-secret-abcdefghijkl"],
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("status,kind", [
    (401, ErrorKind.AUTHENTICATION),
    (403, ErrorKind.AUTHORIZATION),
])
async def test_credential_rejections_fail_fast(no_delay_retry, status, kind):
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(status, json={"errors": [{"code": "NOT.AUTHORIZED.ERROR"}]})

    client = _client(handler, no_delay_retry)
    with pytest.raises(ShippingError) as exc_info:
        await client.get_access_token("client-id", "client-secret")

    assert exc_info.value.kind == kind
    assert calls == 1


@pytest.mark.asyncio
async def test_server_error_retried_then_network_error(no_delay_retry):
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(503, text="Service Unavailable")

    client = _client(handler, no_delay_retry)
    with pytest.raises(ShippingError) as exc_info:
        await client.get_access_token("client-id", "client-secret")

    assert exc_info.value.kind == ErrorKind.NETWORK
    assert exc_info.value.user_message == "FedEx service temporarily unavailable. Please try again."
    assert calls == 3


@pytest.mark.asyncio
async def test_recovers_after_transient_failure(no_delay_retry):
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            return httpx.Response(500, text="oops")
        return httpx.Response(200, json={"access_token": "tok", "expires_in": 60})

    client = _client(handler, no_delay_retry)
    token = await client.get_access_token("client-id", "client-secret")

    assert token.token == "tok"
    assert calls == 2


@pytest.mark.asyncio
async def test_other_status_is_api_response_error(no_delay_retry):
    client = _client(lambda request: httpx.Response(429, text="slow down"), no_delay_retry)
    with pytest.raises(ShippingError) as exc_info:
        await client.get_access_token("client-id", "client-secret")
    assert exc_info.value.kind == ErrorKind.API_RESPONSE


@pytest.mark.asyncio
async def test_success_without_access_token_is_api_response_error(no_delay_retry):
    client = _client(lambda request: httpx.Response(200, json={"token_type": "bearer"}), no_delay_retry)
    with pytest.raises(ShippingError) as exc_info:
        await client.get_access_token("client-id", "client-secret")
    assert exc_info.value.kind == ErrorKind.API_RESPONSE


@pytest.mark.asyncio
async def test_timeout_maps_to_timeout_kind(no_delay_retry):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client(handler, no_delay_retry)
    with pytest.raises(ShippingError) as exc_info:
        await client.get_access_token("client-id", "client-secret")

    assert exc_info.value.kind == ErrorKind.TIMEOUT
    assert exc_info.value.user_message == "Request timed out. Please try again."


@pytest.mark.asyncio
async def test_connection_error_maps_to_network_kind(no_delay_retry):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler, no_delay_retry)
    with pytest.raises(ShippingError) as exc_info:
        await client.get_access_token("client-id", "client-secret")
    assert exc_info.value.kind == ErrorKind.NETWORK


@pytest.mark.asyncio
async def test_injected_client_not_closed():
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    async with FedexAuthClient(base_url=BASE_URL, http_client=http_client):
        pass
    assert http_client.is_closed is False
    await http_client.aclose()
