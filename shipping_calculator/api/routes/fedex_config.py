"""
FedEx credential management routes.

- POST /fedex-config            save / get / validate / delete / check-defaults
- POST /test-fedex-credentials  authenticate + test quote for a set of credentials
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from shipping_calculator.api.deps import get_credential_store, get_credential_tester
from shipping_calculator.core.exceptions import ErrorKind, ShippingError
from shipping_calculator.core.rate_limit import get_credentials_limit
from shipping_calculator.core.request_logger import RequestLogger
from shipping_calculator.core.request_utils import get_request_id, new_request_id
from shipping_calculator.schemas.shipping import (
    CredentialTestResponse,
    FedexConfig,
    FedexConfigAction,
    FedexConfigResponse,
    ShippingErrorResponse,
)
from shipping_calculator.services.credential_store import FedexCredentialStore
from shipping_calculator.services.credential_tester import FedexCredentialTester
from shipping_calculator.services.currency import supported_currencies
from shipping_calculator.services.fedex_auth import FedexAuthClient
from shipping_calculator.services.shipping_service import error_response
from shipping_calculator.services.shipping_types import Credentials

logger = logging.getLogger(__name__)

router = APIRouter(tags=["FedEx Configuration"])


def _to_credentials(config: FedexConfig) -> Credentials:
    return Credentials(
        account_number=config.account_number,
        client_id=config.client_id,
        client_secret=config.client_secret,
    )


def _require_session_id(session_id, action: str) -> str:
    if not session_id:
        raise ShippingError(
            ErrorKind.VALIDATION,
            f"Session ID required for {action}",
            "Session ID is required.",
        )
    return session_id


@router.post(
    "/fedex-config",
    response_model=FedexConfigResponse,
    responses={400: {"model": ShippingErrorResponse}, 422: {"model": ShippingErrorResponse}},
)
@get_credentials_limit()
async def fedex_config(
    request: Request,
    body: FedexConfigAction,
    store: FedexCredentialStore = Depends(get_credential_store),
):
    """Manage session-scoped FedEx credentials."""
    request_id = get_request_id(request)
    log = RequestLogger(logger, request_id)
    log.info(f"FedEx config action: {body.action}")

    try:
        if body.action == "save":
            if body.config is None:
                raise ShippingError(
                    ErrorKind.VALIDATION,
                    "Configuration data required",
                    "All FedEx credentials are required.",
                )
            session_id = await store.save(_to_credentials(body.config), body.sessionId, log)
            return FedexConfigResponse(success=True, message="Configuration saved securely", sessionId=session_id)

        if body.action == "get":
            if body.sessionId:
                credentials = await store.get(body.sessionId, log)
                if credentials is not None:
                    return FedexConfigResponse(
                        success=True,
                        hasConfig=True,
                        sessionId=body.sessionId,
                        config=credentials.masked(),
                    )
            if store.has_defaults():
                return FedexConfigResponse(success=True, hasConfig=True, sessionId="default")
            return FedexConfigResponse(success=True, hasConfig=False)

        if body.action == "validate":
            session_id = _require_session_id(body.sessionId, "validation")
            credentials = await store.get(session_id, log)
            if credentials is None:
                raise ShippingError(
                    ErrorKind.CONFIGURATION,
                    "No configuration found for session",
                    "No saved FedEx configuration found.",
                )
            try:
                async with FedexAuthClient() as auth:
                    await auth.get_access_token(credentials.client_id, credentials.client_secret, log)
            except ShippingError as e:
                if e.kind in (ErrorKind.AUTHENTICATION, ErrorKind.AUTHORIZATION):
                    return FedexConfigResponse(success=True, isValid=False, message="Invalid FedEx credentials")
                raise
            return FedexConfigResponse(success=True, isValid=True, message="FedEx credentials validated successfully")

        if body.action == "delete":
            session_id = _require_session_id(body.sessionId, "deletion")
            await store.delete(session_id, log)
            return FedexConfigResponse(success=True, message="Configuration deleted")

        has_defaults = store.has_defaults()
        return FedexConfigResponse(
            success=True,
            hasConfig=has_defaults,
            message="Default FedEx credentials are configured" if has_defaults else "No default credentials",
            supportedCurrencies=supported_currencies(),
        )
    except ShippingError as e:
        log.warning(f"FedEx config action {body.action} failed: {e.kind.value}: {e.message}")
        status_code, content = error_response(e, request_id)
        return JSONResponse(status_code=status_code, content=content)


@router.post(
    "/test-fedex-credentials",
    response_model=CredentialTestResponse,
    responses={401: {"model": ShippingErrorResponse}, 408: {"model": ShippingErrorResponse}},
)
@get_credentials_limit()
async def test_fedex_credentials(
    request: Request,
    body: FedexConfig,
    tester: FedexCredentialTester = Depends(get_credential_tester),
):
    """Check that credentials authenticate and can price a test parcel."""
    request_id = new_request_id(prefix="test")
    log = RequestLogger(logger, request_id)

    try:
        result = await tester.test(_to_credentials(body), log)
    except ShippingError as e:
        log.warning(f"Credential test failed: {e.kind.value}: {e.message}")
        status_code, content = error_response(e, request_id)
        return JSONResponse(status_code=status_code, content=content)

    return CredentialTestResponse(
        success=True,
        message=result.message,
        accountVerified=result.account_verified,
        authenticationPassed=result.authentication_passed,
        requestId=request_id,
    )
