"""Middleware registration."""

from fastapi import FastAPI

from idlecore.config import Settings
from idlecore.middleware.error_handler import setup_error_handlers
from idlecore.middleware.logging import setup_logging
from idlecore.middleware.request_id import RequestContextMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging, error handlers and the request context middleware."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestContextMiddleware)
