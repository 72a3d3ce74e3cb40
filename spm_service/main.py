"""FastAPI application entry point.

Strategic product management API: the portfolio -> line -> category
taxonomy and the product catalogue classified under it.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from spm_service import __version__
from spm_service.config import settings
from spm_service.core.errors import TaxonomyError
from spm_service.infra.database import close_db_engine, init_models
from spm_service.infra.logging import bind_request_context, get_logger, setup_logging
from spm_service.schemas.common import ErrorResponse

# Import routers
from spm_service.api.routes.health import router as health_router
from spm_service.api.routes.products import router as products_router
from spm_service.api.routes.taxonomy import router as taxonomy_router

# Setup logging first
setup_logging()
logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler.

    Startup:
    - Create the SQL tables when the SQL store backend is selected

    Shutdown:
    - Close database connections
    """
    logger.info(
        "SPM service starting",
        environment=settings.environment,
        store_backend=settings.store_backend,
    )

    if settings.store_backend == "sql":
        try:
            await init_models()
        except Exception as e:
            logger.warning("Failed to create database tables - will retry on first request", error=str(e))

    yield

    # Shutdown
    logger.info("SPM service shutting down")
    await close_db_engine()
    logger.info("Cleanup complete")


# Create FastAPI app
app = FastAPI(
    title="SPM Taxonomy Service",
    description="Strategic product management: taxonomy hierarchy and product catalogue",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment == "dev" else None,
    redoc_url=None,
)

# CORS middleware (mainly for local development)
if settings.environment == "dev":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Bind request context for all logs of this request and log its outcome."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    bind_request_context(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id

    logger.info("Request handled", status_code=response.status_code)
    return response


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(TaxonomyError)
async def taxonomy_error_handler(request: Request, exc: TaxonomyError) -> JSONResponse:
    """Map domain errors to their status code and an ErrorResponse body."""
    logger.info(
        "Request rejected",
        error=exc.message,
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        path=request.url.path,
    )
    body = ErrorResponse(error=exc.message, error_type=type(exc).__name__)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "error_type": type(exc).__name__,
        },
    )


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router, tags=["Health"])
app.include_router(taxonomy_router, prefix="/taxonomy", tags=["Taxonomy"])
app.include_router(products_router, prefix="/products", tags=["Products"])


# =============================================================================
# Root Endpoint
# =============================================================================


@app.get("/")
async def root() -> dict:
    """Root endpoint - basic service info."""
    return {
        "service": "SPM Taxonomy Service",
        "version": __version__,
        "environment": settings.environment,
        "store_backend": settings.store_backend,
    }
