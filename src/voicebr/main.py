"""
FastAPI application entry point.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable
from uuid import uuid4

import httpx
import uvicorn
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from voicebr.broadcast.orchestrator import BroadcastOrchestrator, CallDeadlinePolicy
from voicebr.config import Settings, get_settings
from voicebr.shared.exceptions import (
    AppException,
    AuthenticationError,
    PayloadDecodeError,
)
from voicebr.shared.logging import correlation_id_var, get_logger, setup_logging
from voicebr.storage.local import LocalStorage
from voicebr.telephony.client import SignedClient
from voicebr.telephony.ratelimit import TokenBucketLimiter
from voicebr.webhooks.handler import WebhookDispatcher
from voicebr.webhooks.router import router as webhooks_router

logger = get_logger(__name__)


def _status_for(exc: AppException) -> int:
    if isinstance(exc, AuthenticationError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(exc, PayloadDecodeError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    storage = LocalStorage(
        settings.storage_root,
        whitelist_filename=settings.whitelist_filename,
        broadcast_list_filename=settings.broadcast_list_filename,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build the shared client, limiters and orchestrator."""
        setup_logging(settings)
        await storage.ensure_layout()

        http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout_seconds))
        client = SignedClient.from_pem(
            settings.load_private_key(),
            settings.application_id,
            settings.number,
            settings.external_origin,
            http_client=http_client,
            call_limiter=TokenBucketLimiter(settings.call_rate_per_second),
            get_limiter=TokenBucketLimiter(settings.get_rate_per_second),
        )
        orchestrator = BroadcastOrchestrator(
            client,
            storage,
            calls_url=settings.calls_url,
            deadline_policy=CallDeadlinePolicy(
                factor=settings.call_deadline_factor,
                min_batches=settings.call_deadline_min_batches,
            ),
        )
        app.state.orchestrator = orchestrator
        app.state.dispatcher = WebhookDispatcher(client, storage, orchestrator, settings)

        logger.info(
            "Application starting",
            extra={
                "application_id": settings.application_id,
                "number": settings.number,
                "external_origin": settings.external_origin,
                "storage_root": str(settings.storage_root),
            },
        )

        yield

        logger.info("Shutting down application", extra={"pending_calls": orchestrator.pending})
        await orchestrator.drain(timeout=settings.shutdown_drain_seconds)
        await http_client.aclose()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="voicebr",
        description="Broadcast voice messages to a set of recipients",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )

    # Map domain exceptions to HTTP responses
    @app.exception_handler(AppException)
    async def _app_exception(_: Request, exc: AppException) -> JSONResponse:
        code = _status_for(exc)
        if code >= 500:
            logger.error("Request failed", extra={"error": exc.message, "code": exc.code})
        return JSONResponse(status_code=code, content={"detail": exc.message, "code": exc.code})

    @app.middleware("http")
    async def request_logging(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        token = correlation_id_var.set(request.headers.get("x-request-id") or str(uuid4()))
        try:
            logger.info(f"[{request.method}] {request.url.path}")
            return await call_next(request)
        finally:
            correlation_id_var.reset(token)

    app.include_router(webhooks_router)
    app.mount("/static", StaticFiles(directory=storage.rec_dir, check_dir=False), name="static")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


def run() -> None:
    """Console entry point."""
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)
