"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from mailsorter.api.ai import router as ai_router
from mailsorter.api.models import HealthResponse
from mailsorter.api.rules import router as rules_router
from mailsorter.api.senders import router as senders_router
from mailsorter.api.smart_labels import router as smart_labels_router
from mailsorter.config import Settings
from mailsorter.db import check_connection, create_db_engine, ensure_schema
from mailsorter.exceptions import (
    AuthenticationError,
    ClassifierTimeoutError,
    ConfigurationError,
    InvalidTransitionError,
    MailsorterError,
    NotFoundError,
    UpstreamError,
)
from mailsorter.utils import configure_logging

logger = structlog.get_logger()

# Most specific first.
_STATUS_BY_ERROR: tuple[tuple[type[MailsorterError], int], ...] = (
    (ConfigurationError, 503),
    (AuthenticationError, 401),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (ClassifierTimeoutError, 504),
    (UpstreamError, 502),
)


def status_for(exc: MailsorterError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


async def _handle_mailsorter_error(request: Request, exc: MailsorterError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.warning("request_failed", path=request.url.path, status=status, error=str(exc))
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def create_app(settings: Settings | None = None, *, engine: Engine | None = None) -> FastAPI:
    """Build the API application.

    Args:
        settings: Settings snapshot used for the lifetime of the app.
        engine: Optional pre-built engine (tests). Defaults to the configured URL.
    """
    from mailsorter.config import get_settings

    settings = settings or get_settings()
    configure_logging(settings.log_level)
    engine = engine or create_db_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        ensure_schema(engine)
        logger.info("api_started", database_url=engine.url.render_as_string(hide_password=True))
        yield

    app = FastAPI(title="Mailsorter", debug=settings.debug, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.classifier = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(MailsorterError, _handle_mailsorter_error)

    app.include_router(ai_router)
    app.include_router(senders_router)
    app.include_router(smart_labels_router)
    app.include_router(rules_router)

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        try:
            check_connection(engine)
            database = True
        except SQLAlchemyError as exc:
            logger.warning("health_database_unreachable", error=str(exc))
            database = False
        return HealthResponse(
            status="ok" if database else "degraded",
            database=database,
            classifier_configured=settings.classifier_configured,
        )

    return app
