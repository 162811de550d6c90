"""
Readiness JTBD — FastAPI Application Entry Point

Builds the API app: structlog setup, a lifespan that checks the database
and the classifier configuration, per-request context logging with a
wall-clock budget, CORS, and liveness/readiness probes.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.api.router import router as api_router
from app.config import Settings, get_settings
from app.database import get_engine

logger = structlog.get_logger("readiness")


def configure_logging(level: str) -> None:
    """JSON lines on stdout; request context is merged from contextvars."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    logger.info(
        "startup_begin",
        environment=settings.ENVIRONMENT,
        classifier_models=settings.model_chain,
    )

    if not settings.GEMINI_API_KEY:
        # Mapping, scoring and aggregation still work; /responses/analyze won't.
        logger.warning("classifier_api_key_missing")

    async with get_engine().connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("database_ready")

    yield

    await get_engine().dispose()
    logger.info("shutdown_complete")


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id to every log line, enforce the request budget and
    log one ``request_handled`` event per call.

    Classification goes out to the LLM, so the budget has to cover the whole
    model fallback chain.
    """

    def __init__(self, app, timeout_seconds: float) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("request_timeout", timeout=self.timeout_seconds)
            response = JSONResponse(status_code=504, content={"detail": "Request timed out"})

        response.headers["x-request-id"] = request_id
        logger.info(
            "request_handled",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    application = FastAPI(
        title="Readiness JTBD",
        description="JTBD force mapping, response classification and survey aggregation",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None,
    )
    application.state.settings = settings

    application.add_middleware(
        RequestContextMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @application.get("/health", tags=["health"])
    async def health_liveness() -> dict:
        return {"status": "healthy"}

    @application.get("/health/deep", tags=["health"])
    async def health_deep() -> dict:
        """Readiness probe: database round-trip plus classifier configuration."""
        result: dict = {
            "status": "healthy",
            "database": "connected",
            "classifier": "configured" if settings.GEMINI_API_KEY else "missing_api_key",
        }
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            logger.error("health_db_failure", error=str(exc))
            result["database"] = f"error: {exc}"
            result["status"] = "degraded"
        return result

    application.include_router(api_router, prefix="/api/v1")
    return application


app = create_app()
