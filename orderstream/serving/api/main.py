"""
FastAPI Application Factory

Creates and configures the read API.
"""

from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from orderstream.config import Settings
from orderstream.serving.api.middleware import RequestLoggingMiddleware
from orderstream.serving.api.routes import health_router, orders_router


def create_api_app(settings: Settings, lifespan: Optional[Any] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Application settings
        lifespan: Lifespan context manager owning the service components

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Order Stream Cache API",
        description="Cached lookups of ingested orders",
        version=settings.version,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router, tags=["Health"])
    app.include_router(orders_router, prefix="/orders", tags=["Orders"])

    return app
