"""
FastAPI application entrypoint for the class registration backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from registration.api.routes import router as api_router
from registration.core.config import get_settings
from registration.core.logging import configure_logging
from registration.dependencies import get_token_manager

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Class Registration Backend",
        version="0.1.0",
        description="Registration form intake with CRM, booking and calendar integrations.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.include_router(api_router, prefix="/api")

    # Integration settings are validated once here, not per request.
    token_manager = get_token_manager()
    logger.info("Configured integrations: %s", ", ".join(token_manager.systems) or "none")
    return app


app = create_app()

__all__ = ["app", "create_app"]
