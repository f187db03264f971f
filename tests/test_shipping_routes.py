"""
HTTP-level tests for the shipping and FedEx configuration routes.
"""
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from conftest import FEDEX_BASE_URL, make_fedex_transport, token_ok
from shipping_calculator.api import deps
from shipping_calculator.api.routes import fedex_config as fedex_config_routes
from shipping_calculator.core.rate_limit import limiter
from shipping_calculator.main import app
from shipping_calculator.services.credential_store import FedexCredentialStore
from shipping_calculator.services.credential_tester import FedexCredentialTester
from shipping_calculator.services.encryption import encrypt_secret
from shipping_calculator.services.fedex_auth import FedexAuthClient
from shipping_calculator.services.shipping_service import ShippingCalculator


@pytest.fixture(autouse=True)
def fresh_limiter(monkeypatch):
    monkeypatch.setattr(limiter, "enabled", True)
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture(autouse=True)
def clear_overrides():
    yield
    app.dependency_overrides.clear()


def _http() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture
def quote_body(fedex_config):
    return {
        "collection": "abstract-series",
        "size": "50x70",
        "country": "US",
        "postalCode": "10001",
        "fedexConfig": fedex_config,
    }


@pytest.fixture
def calculator(package_dims, fedex_clients, fedex_rate_reply):
    lookup = AsyncMock()
    lookup.get.return_value = package_dims
    auth, rates = fedex_clients(token_ok, lambda request: httpx.Response(200, json=fedex_rate_reply))
    calculator = ShippingCalculator(dimension_lookup=lookup, auth_client=auth, rate_client=rates)
    app.dependency_overrides[deps.get_shipping_calculator] = lambda: calculator
    return calculator


@pytest.fixture
def store(mock_db):
    store = FedexCredentialStore(mock_db)
    app.dependency_overrides[deps.get_credential_store] = lambda: store
    return store


class TestCalculateShipping:
    @pytest.mark.asyncio
    async def test_success(self, calculator, quote_body):
        async with _http() as http:
            resp = await http.post("/api/calculate-shipping", json=quote_body)

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert len(data["rates"]) == 2
        assert data["rates"][0]["cost"] == 120.5
        assert data["requestId"] == resp.headers["x-request-id"]
        assert data["requestId"].startswith("req_")
        assert "x-request-duration" in resp.headers

    @pytest.mark.asyncio
    async def test_configuration_error_envelope(self, calculator, quote_body):
        del quote_body["fedexConfig"]["clientSecret"]

        async with _http() as http:
            resp = await http.post("/api/calculate-shipping", json=quote_body)

        assert resp.status_code == 422
        data = resp.json()
        assert data["success"] is False
        assert data["errorType"] == "CONFIGURATION_ERROR"
        assert "clientSecret" not in data["error"]

    @pytest.mark.asyncio
    async def test_invalid_json_is_validation_error(self, calculator):
        async with _http() as http:
            resp = await http.post(
                "/api/calculate-shipping",
                content=b"{not json",
                headers={"content-type": "application/json"},
            )

        assert resp.status_code == 400
        assert resp.json()["errorType"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_session_header_forwarded(self, quote_body):
        captured = {}

        class RecordingCalculator:
            async def handle(self, body, request_id, session_id=None):
                captured["session_id"] = session_id
                return 200, {"success": True, "rates": [], "requestId": request_id}

        app.dependency_overrides[deps.get_shipping_calculator] = RecordingCalculator

        async with _http() as http:
            await http.post("/api/calculate-shipping", json=quote_body, headers={"x-session-id": "sess-1"})

        assert captured["session_id"] == "sess-1"

    @pytest.mark.asyncio
    async def test_oversized_body_rejected(self, calculator):
        async with _http() as http:
            resp = await http.post(
                "/api/calculate-shipping",
                content=b"x" * (70 * 1024),
                headers={"content-type": "application/json"},
            )
        assert resp.status_code == 413


class TestFedexConfig:
    @pytest.mark.asyncio
    async def test_save_returns_session_id(self, store, fedex_config, mock_db):
        async with _http() as http:
            resp = await http.post("/api/fedex-config", json={"action": "save", "config": fedex_config})

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert len(data["sessionId"]) == 36
        mock_db.add.assert_called_once()

    @pytest.mark.asyncio
    async def test_save_without_config_is_400(self, store):
        async with _http() as http:
            resp = await http.post("/api/fedex-config", json={"action": "save"})

        assert resp.status_code == 400
        assert resp.json()["errorType"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_get_returns_masked_config(self, store, mock_db, fedex_config):
        row = MagicMock(
            encrypted_account_number=encrypt_secret(fedex_config["accountNumber"]),
            encrypted_client_id=encrypt_secret(fedex_config["clientId"]),
            encrypted_client_secret=encrypt_secret(fedex_config["clientSecret"]),
        )
        result = MagicMock()
        result.scalar_one_or_none.return_value = row
        mock_db.execute.return_value = result

        async with _http() as http:
            resp = await http.post("/api/fedex-config", json={"action": "get", "sessionId": "sess-1"})

        data = resp.json()
        assert data["hasConfig"] is True
        assert data["config"]["accountNumber"] == "****1073"
        assert fedex_config["clientSecret"] not in resp.text

    @pytest.mark.asyncio
    async def test_get_without_anything_saved(self, store, mock_db):
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_db.execute.return_value = result

        async with _http() as http:
            resp = await http.post("/api/fedex-config", json={"action": "get", "sessionId": "sess-1"})

        assert resp.json() == {
            "success": True,
            "message": None,
            "hasConfig": False,
            "isValid": None,
            "sessionId": None,
            "config": None,
            "supportedCurrencies": None,
        }

    @pytest.mark.asyncio
    async def test_check_defaults_lists_supported_currencies(self, store):
        async with _http() as http:
            resp = await http.post("/api/fedex-config", json={"action": "check-defaults"})

        data = resp.json()
        assert resp.status_code == 200
        assert isinstance(data["hasConfig"], bool)
        assert {"USD", "EUR", "THB"} <= set(data["supportedCurrencies"])
        assert data["supportedCurrencies"] == sorted(set(data["supportedCurrencies"]))

    @pytest.mark.asyncio
    async def test_validate_reports_rejected_credentials(self, store, mock_db, fedex_config, monkeypatch):
        row = MagicMock(
            encrypted_account_number=encrypt_secret(fedex_config["accountNumber"]),
            encrypted_client_id=encrypt_secret(fedex_config["clientId"]),
            encrypted_client_secret=encrypt_secret(fedex_config["clientSecret"]),
        )
        result = MagicMock()
        result.scalar_one_or_none.return_value = row
        mock_db.execute.return_value = result

        def token_401(request):
            return httpx.Response(401, json={"errors": [{"code": "NOT.AUTHORIZED.ERROR"}]})

        http_client = httpx.AsyncClient(transport=make_fedex_transport(token_401, token_401))
        monkeypatch.setattr(
            fedex_config_routes,
            "FedexAuthClient",
            lambda: FedexAuthClient(base_url=FEDEX_BASE_URL, http_client=http_client),
        )

        async with _http() as http:
            resp = await http.post("/api/fedex-config", json={"action": "validate", "sessionId": "sess-1"})

        assert resp.status_code == 200
        assert resp.json()["isValid"] is False

    @pytest.mark.asyncio
    async def test_delete_requires_session_id(self, store):
        async with _http() as http:
            resp = await http.post("/api/fedex-config", json={"action": "delete"})

        assert resp.status_code == 400
        assert resp.json()["error"] == "Session ID is required."

    @pytest.mark.asyncio
    async def test_unknown_action_rejected(self, store):
        async with _http() as http:
            resp = await http.post("/api/fedex-config", json={"action": "purge"})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_credentials_endpoint_rate_limited(self, store):
        async with _http() as http:
            statuses = [
                (await http.post("/api/fedex-config", json={"action": "check-defaults"})).status_code
                for _ in range(6)
            ]

        assert statuses[:5] == [200] * 5
        assert statuses[5] == 429


class TestCredentialTest:
    @pytest.mark.asyncio
    async def test_valid_credentials(self, fedex_clients, fedex_config, fedex_rate_reply):
        auth, rates = fedex_clients(token_ok, lambda request: httpx.Response(200, json=fedex_rate_reply))
        app.dependency_overrides[deps.get_credential_tester] = lambda: FedexCredentialTester(auth, rates)

        async with _http() as http:
            resp = await http.post("/api/test-fedex-credentials", json=fedex_config)

        data = resp.json()
        assert resp.status_code == 200
        assert data["accountVerified"] is True
        assert data["authenticationPassed"] is True
        assert data["requestId"].startswith("test_")

    @pytest.mark.asyncio
    async def test_malformed_account_number(self, fedex_config):
        fedex_config["accountNumber"] = "ABCDEFGHI"
        app.dependency_overrides[deps.get_credential_tester] = lambda: None

        async with _http() as http:
            resp = await http.post("/api/test-fedex-credentials", json=fedex_config)

        assert resp.status_code == 422
