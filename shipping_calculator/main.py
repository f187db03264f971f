"""
Shipping Calculator API
FastAPI application entry point

- FedEx rate quotes for catalog items (POST /api/calculate-shipping)
- Session-scoped FedEx credential management
- Rate limiting with SlowAPI
- Error sanitization and request correlation middleware
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from shipping_calculator.api.routes import fedex_config, shipping
from shipping_calculator.core.config import settings
from shipping_calculator.core.database import AsyncSessionLocal
from shipping_calculator.core.error_handler import ErrorSanitizationMiddleware
from shipping_calculator.core.rate_limit import limiter, rate_limit_exceeded_handler
from shipping_calculator.core.utils import utcnow
from shipping_calculator.middleware.request_context import RequestContextMiddleware

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="""
## Shipping Calculator API

Quotes FedEx shipping rates for artwork collections.

### Flow
1. The package weight and box size are looked up for the collection and size
2. A settlement currency is chosen (caller preference or destination default)
3. A fresh FedEx OAuth token is fetched for the request
4. FedEx Rate Quote is called and the reply is normalized into a flat rate list

### Errors
Failures return `{success: false, error, requestId, errorType}`:
- Validation: 400
- Authentication/Authorization: 401
- Timeout: 408
- Configuration: 422
- Everything else: 500
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Shipping", "description": "FedEx rate quotes"},
        {"name": "FedEx Configuration", "description": "Session-scoped FedEx credentials"},
    ],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


MAX_REQUEST_SIZE = 64 * 1024  # quote bodies are tiny


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests that exceed the size limit."""

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_SIZE:
            logger.warning(
                f"Request size limit exceeded: {content_length} bytes on {request.url.path}"
            )
            return JSONResponse(
                status_code=413,
                content={
                    "success": False,
                    "error": f"Request body exceeds maximum size of {MAX_REQUEST_SIZE // 1024}KB",
                },
            )
        return await call_next(request)


# Added innermost first; RequestContextMiddleware runs outermost so every
# other layer sees request.state.request_id
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(ErrorSanitizationMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)

app.include_router(shipping.router, prefix="/api")
app.include_router(fedex_config.router, prefix="/api")


@app.get("/", tags=["Health"])
async def root():
    return {"name": settings.APP_NAME, "status": "ok"}


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness plus a database ping; FedEx is not called."""
    database = "ok"
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Health check database ping failed: {type(e).__name__}")
        database = "unavailable"

    healthy = database == "ok"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "database": database,
            "environment": settings.ENVIRONMENT,
            "fedex_defaults_configured": settings.has_default_fedex_credentials,
            "timestamp": utcnow().isoformat(),
        },
    )


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        "shipping_calculator.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "8000")),
        reload=settings.DEBUG,
    )
