"""
Shipping quote API route.

The body is read as raw JSON and validated by the service layer, so a
malformed request is answered with the shipping error envelope (400/422)
rather than FastAPI's default validation response.
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from shipping_calculator.api.deps import get_shipping_calculator
from shipping_calculator.core.rate_limit import get_quote_limit
from shipping_calculator.core.request_utils import extract_session_id, get_request_id
from shipping_calculator.schemas.shipping import (
    CalculateShippingRequest,
    ShippingErrorResponse,
    ShippingQuoteResponse,
)
from shipping_calculator.services.shipping_service import ShippingCalculator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Shipping"])

_ERROR_RESPONSES = {
    status: {"model": ShippingErrorResponse}
    for status in (400, 401, 408, 422, 429, 500)
}


@router.post(
    "/calculate-shipping",
    response_model=ShippingQuoteResponse,
    responses=_ERROR_RESPONSES,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {
                "application/json": {
                    "schema": CalculateShippingRequest.model_json_schema(
                        by_alias=True, ref_template="#/components/schemas/{model}"
                    ),
                }
            },
        }
    },
)
@get_quote_limit()
async def calculate_shipping(
    request: Request,
    calculator: ShippingCalculator = Depends(get_shipping_calculator),
):
    """Quote FedEx rates for a collection/size shipped to a destination."""
    request_id = get_request_id(request)

    try:
        body = await request.json()
    except ValueError:
        logger.warning(f"[{request_id}] Request body is not valid JSON")
        body = None

    status_code, content = await calculator.handle(
        body,
        request_id=request_id,
        session_id=extract_session_id(request),
    )
    return JSONResponse(status_code=status_code, content=content)
