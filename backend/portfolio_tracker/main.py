# backend/portfolio_tracker/main.py
"""
FastAPI application entry point.

This file:
- Configures application-wide logging
- Creates the FastAPI application
- Registers global exception handlers
- Registers all routers
- Defines global endpoints (health checks)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portfolio_tracker import __version__
from portfolio_tracker.config import settings
from portfolio_tracker.database import check_database_health, init_db
from portfolio_tracker.routers import lots_router, portfolio_router, tags_router
from portfolio_tracker.schemas.errors import ErrorDetail, ValidationErrorDetail
from portfolio_tracker.services.exceptions import (
    ConcurrentModificationError,
    ConfirmationRequiredError,
    InvalidInputError,
    MarketDataError,
    NotFoundError,
    RateLimitError,
    ServiceError,
)
from portfolio_tracker.utils import setup_logging

logger = logging.getLogger(__name__)

# =============================================================================
# LOGGING SETUP (must be before app creation)
# =============================================================================

setup_logging()


# =============================================================================
# APPLICATION SETUP
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(
        f"{settings.app_name} started ({settings.environment}, "
        f"reporting in {settings.reporting_currency})"
    )
    yield


app = FastAPI(
    title=settings.app_name,
    description="Portfolio consolidation, valuation and period comparison API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================
# Service-layer exceptions carry no HTTP knowledge; they are mapped to
# status codes here. Starlette picks the handler of the most specific class.
# =============================================================================

@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    """Handle rejected edits (400)."""
    logger.warning(f"Invalid input: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details={"field": exc.field} if exc.field else None,
        ).model_dump(),
    )


@app.exception_handler(ConfirmationRequiredError)
async def confirmation_required_handler(
    request: Request, exc: ConfirmationRequiredError
) -> JSONResponse:
    """Handle destructive actions sent without confirmation (409)."""
    logger.info(f"Confirmation required: {exc.action}")
    return JSONResponse(
        status_code=409,
        content=ErrorDetail(
            error="ConfirmationRequiredError",
            message=str(exc),
            details={"action": exc.action},
        ).model_dump(),
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle unknown lots, holdings, sales, dividends and tags (404)."""
    logger.warning(f"Not found: {exc.resource_type} {exc.resource_id}")
    return JSONResponse(
        status_code=404,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details={"resource_type": exc.resource_type, "resource_id": exc.resource_id},
        ).model_dump(),
    )


@app.exception_handler(ConcurrentModificationError)
async def concurrent_modification_handler(
    request: Request, exc: ConcurrentModificationError
) -> JSONResponse:
    """Handle lost compare-and-swap races (409)."""
    logger.warning(f"Concurrent modification: {exc}")
    return JSONResponse(
        status_code=409,
        content=ErrorDetail(
            error="ConcurrentModificationError",
            message=str(exc),
            details={
                "collection": exc.collection,
                "expected_version": exc.expected_version,
                "actual_version": exc.actual_version,
            },
        ).model_dump(),
    )


@app.exception_handler(MarketDataError)
async def market_data_error_handler(request: Request, exc: MarketDataError) -> JSONResponse:
    """Handle quote provider failures (503)."""
    logger.error(f"Market data error: {exc}")
    details = None
    if isinstance(exc, RateLimitError) and exc.retry_after:
        details = {"retry_after": exc.retry_after}
    return JSONResponse(
        status_code=503,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details=details,
        ).model_dump(),
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle any other service error (500)."""
    logger.error(f"Service error: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details=None,
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Convert FastAPI's {"detail": ...} format to ErrorDetail."""
    error_types = {
        400: "BadRequestError",
        404: "NotFoundError",
        405: "MethodNotAllowedError",
        409: "ConflictError",
        422: "ValidationError",
        500: "InternalServerError",
        503: "ServiceUnavailableError",
    }
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorDetail(
            error=error_types.get(exc.status_code, "HTTPError"),
            message=str(exc.detail) if exc.detail else "An error occurred",
            details=None,
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Convert the default 422 validation error to ValidationErrorDetail."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=422,
        content=ValidationErrorDetail(
            error="ValidationError",
            message="Request validation failed",
            details=errors,
        ).model_dump(),
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(portfolio_router)  # /holdings, /valuation, /comparison, ...
app.include_router(lots_router)  # /lots/*, /holdings (PATCH), /sales/*, /dividends/*
app.include_router(tags_router)  # /tags/*


# =============================================================================
# GLOBAL ENDPOINTS
# =============================================================================

@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns HTTP 503 if the database is unreachable.
    """
    database = check_database_health()
    healthy = database["status"] == "healthy"
    content = {
        "status": "healthy" if healthy else "unhealthy",
        "database": database["status"],
        "environment": settings.environment,
        "version": __version__,
    }
    return JSONResponse(status_code=200 if healthy else 503, content=content)
