"""
Main FastAPI application for the generation API.
Serves health, generation, provider catalog and metrics.
"""
import logging
import time
import uuid
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from genstudio.api.envelope import error_envelope
from genstudio.api.routes import generation, health
from genstudio.core.config import settings
from genstudio.core.logging import configure_logging, request_id_var
from genstudio.services.generation import GenerationError, GenerationService, ValidationError
from genstudio.services.generation.transport import ProviderTransport, build_http_client
from genstudio.services.rate_limit import InboundRateLimits
from genstudio.utils.metrics import generation_errors_total
from genstudio.utils.metrics import router as metrics_router

logger = logging.getLogger(__name__)


def create_app(
    transport: httpx.AsyncBaseTransport | None = None,
    rate_limits: InboundRateLimits | None = None,
) -> FastAPI:
    """Build the app. Tests inject an httpx.MockTransport and their own limits."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = build_http_client(transport)
        app.state.generation_service = GenerationService(ProviderTransport(client))
        app.state.rate_limits = rate_limits or InboundRateLimits.from_settings()
        logger.info("app_started", extra={"status": settings.app_env})
        try:
            yield
        finally:
            await client.aclose()
            logger.info("app_stopped")

    app = FastAPI(
        title="GenStudio API",
        description="Multi-provider image and video generation",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        request_id = request.headers.get(settings.request_id_header) or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        started = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[settings.request_id_header] = request_id
        # Path only: query strings may carry prompts
        logger.info(
            "http_request",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "latency_ms": round((time.monotonic() - started) * 1000, 1),
            },
        )
        return response

    @app.exception_handler(GenerationError)
    async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
        generation_errors_total.labels(kind=exc.kind.value, code=exc.code).inc()
        logger.info(
            "request_failed",
            extra={
                "path": request.url.path,
                "error_kind": exc.kind.value,
                "error_code": exc.code,
                "http_status": exc.http_status,
            },
        )
        return JSONResponse(status_code=exc.http_status, content=error_envelope(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Echoing pydantic's error list would echo the submitted body (and any apiKey in it)
        error = ValidationError("Invalid request body", code="invalid_body")
        return JSONResponse(status_code=error.http_status, content=error_envelope(error))

    # Routers
    app.include_router(health.router, tags=["health"])
    app.include_router(generation.router)
    app.include_router(metrics_router)
    return app


configure_logging()
app = create_app()
