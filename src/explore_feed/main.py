# src/explore_feed/main.py
"""Main entry point for the explore feed service."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from explore_feed.api.v1 import feed_router
from explore_feed.core.logging_config import configure_logging
from explore_feed.core.settings import settings
from explore_feed.schemas.feed import ErrorResponse
from explore_feed.services.errors import HTTP_BAD_REQUEST, HTTP_INTERNAL_SERVER_ERROR, FeedError
from explore_feed.services.ranking import close_remote_ranking_source

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Release outbound clients on shutdown."""
    logger.info("Starting %s %s", settings.app_name, settings.app_version)
    yield
    await close_remote_ranking_source()
    logger.info("Stopped %s", settings.app_name)


# Initialize FastAPI app
app = FastAPI(
    title="Explore Feed API",
    description="Ranked explore feed and engagement tracking",
    version=settings.app_version,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(feed_router, prefix="/api/v1")


@app.exception_handler(FeedError)
async def feed_error_handler(request: Request, exc: FeedError) -> JSONResponse:
    """Render service errors in the shared error envelope."""
    if exc.status_code >= HTTP_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        body = ErrorResponse(message=exc.message, error=exc.detail)
    else:
        body = ErrorResponse(message=exc.detail)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render malformed parameters as a 400 in the shared error envelope."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    logger.warning("%s %s rejected: %s", request.method, request.url.path, problems)
    body = ErrorResponse(message="Invalid request parameters", error=problems or None)
    return JSONResponse(status_code=HTTP_BAD_REQUEST, content=body.model_dump(exclude_none=True))


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Explore Feed API",
        "version": settings.app_version,
        "description": "Ranked explore feed and engagement tracking",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("explore_feed.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
