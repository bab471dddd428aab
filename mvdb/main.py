"""MVDB Catalog API - FastAPI Application."""

import logging
from contextlib import asynccontextmanager

from mvdb.logging import configure_logging

# Configure logging before anything else logs
configure_logging()

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from mvdb.api.v1.router import api_router
from mvdb.api.deps import get_kv_store
from mvdb.config import get_settings
from mvdb.core.errors import CatalogError, ErrorCode
from mvdb.core.rate_limit import limiter
from mvdb.db.database import init_db, engine
from mvdb.db.inspector import ENTITY_PREFIXES
from mvdb.middleware import CorrelationIDMiddleware
from mvdb.services.kv_store import KVStore

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    await init_db()
    logger.info(f"{settings.app_name} started")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="Catalog API for actors, actresses, studios, series, idol groups and photobooks",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# ==================== Error Handlers ====================

@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
    return JSONResponse(
        status_code=400,
        content={"error": message, "code": ErrorCode.VALIDATION.value},
    )


_HTTP_STATUS_CODES = {
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.UNAUTHORIZED,
    404: ErrorCode.NOT_FOUND,
}


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code in _HTTP_STATUS_CODES:
        code = _HTTP_STATUS_CODES[exc.status_code]
    elif exc.status_code >= 500:
        code = ErrorCode.SERVER
    else:
        code = ErrorCode.VALIDATION
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "code": code.value},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "code": ErrorCode.SERVER.value},
    )


# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS middleware - restricted methods and headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID"],  # Allow frontend to read correlation ID
)

# Correlation ID middleware for request tracing
app.add_middleware(CorrelationIDMiddleware)

# Include API routes
app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/health/db")
async def db_status(store: KVStore = Depends(get_kv_store)):
    """Check store connectivity and report record counts per entity type."""
    try:
        counts = {
            name: await store.count_by_prefix(prefix)
            for name, prefix in ENTITY_PREFIXES
        }
        return {
            "status": "healthy",
            "has_data": any(counts.values()),
            "counts": counts,
        }
    except Exception as e:
        logger.error(f"Health check DB error: {e}")
        return {
            "status": "error",
            "has_data": False,
            "error": "Database health check failed",
        }


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }
