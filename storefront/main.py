"""Storefront API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from storefront.api.admin import router as admin_router
from storefront.api.auth import router as auth_router
from storefront.api.chats import router as chats_router
from storefront.api.facets import router as facets_router
from storefront.api.health import router as health_router
from storefront.api.idempotency import setup_idempotency_middleware
from storefront.api.inquiries import router as inquiries_router
from storefront.api.media import router as media_router
from storefront.api.middleware import setup_middleware
from storefront.api.products import router as products_router
from storefront.api.site import router as site_router
from storefront.api.wishlist import router as wishlist_router
from storefront.domain import DomainError
from storefront.infrastructure.config import settings
from storefront.infrastructure.logging import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    configure_logging(settings)
    logger.info(
        "Starting Storefront API",
        version=settings.api_version,
        debug=settings.debug,
    )

    yield

    logger.info("Shutting down Storefront API")


app = FastAPI(
    title="Storefront API",
    description="Rental marketplace backend with realtime inquiry chats",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Idempotency first so it runs inside the session middleware
setup_idempotency_middleware(app)

# Request ID, session auth, maintenance guard, error handling
setup_middleware(app)

# CORS middleware (outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(auth_router)
app.include_router(products_router)
app.include_router(facets_router)
app.include_router(wishlist_router)
app.include_router(inquiries_router)
app.include_router(chats_router)
app.include_router(media_router)
app.include_router(site_router)
app.include_router(admin_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


def _error_body(
    request: Request,
    error_code: str,
    message: str,
    details: dict | list,
) -> dict:
    return {
        "error_code": error_code,
        "message": message,
        "details": details,
        "request_id": getattr(request.state, "request_id", None),
    }


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Render domain errors with their own code and status."""
    if exc.status_code >= 500:
        logger.error("Domain error", error_code=exc.error_code, error=exc.message)
    else:
        logger.info("Request rejected", error_code=exc.error_code, status_code=exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(_error_body(request, exc.error_code, exc.message, exc.details)),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures in the uniform format."""
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder(
            _error_body(
                request,
                "VALIDATION_ERROR",
                "Request validation failed",
                [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                    for err in exc.errors()
                ],
            )
        ),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", {})
    else:
        error_code = "NOT_FOUND" if exc.status_code == 404 else "ERROR"
        message = str(detail)
        details = {}

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, error_code, message, details),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(request, "INTERNAL_ERROR", "An internal error occurred", {}),
    )
