"""
Application factory - builds FastAPI app with middleware, error handling and routes.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from protocolpdf import __version__
from protocolpdf.config import Settings, get_settings
from protocolpdf.modules.health.router import router as health_router
from protocolpdf.modules.render.router import router as render_router
from protocolpdf.shared.errors import ProtocolPdfError
from protocolpdf.shared.ids import generate_request_id
from protocolpdf.shared.logging import (
    clear_request_context,
    get_logger,
    get_request_context,
    set_request_context,
    setup_logging,
)
from protocolpdf.shared.types import RequestContext

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan - startup and shutdown."""
    settings = get_settings()

    setup_logging(settings.log_level)
    logger.info("Starting ProtocolPDF...")
    if settings.public_site_url:
        logger.info(f"Public site: {settings.public_site_url}")
    else:
        logger.info("Public site resolved per request from forwarded headers")
    if not settings.data_api_url:
        logger.warning("No data proxy configured; checklist lookups are skipped")

    yield

    logger.info("ProtocolPDF stopped")


def build_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Optional settings override (useful for testing)

    Returns:
        Configured FastAPI application
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="ProtocolPDF",
        description="Vehicle handover protocol PDF export",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Protocol-Quality", "X-Request-ID"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next: Any) -> Response:
        """Attach request context for logging and tracing."""
        ctx = RequestContext(request_id=request.headers.get("X-Request-ID") or generate_request_id())
        set_request_context(ctx)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = ctx.request_id
            return response
        finally:
            clear_request_context()

    @app.exception_handler(ProtocolPdfError)
    async def protocolpdf_error_handler(
        request: Request, exc: ProtocolPdfError
    ) -> JSONResponse:
        """Handle ProtocolPdfError with consistent JSON response."""
        ctx = get_request_context()
        if exc.http_status >= 500:
            logger.error(f"{exc.code}: {exc.message}")

        return JSONResponse(
            status_code=exc.http_status,
            content={
                "error": exc.to_dict(),
                "request_id": ctx.request_id if ctx else None,
            },
        )

    app.include_router(health_router, tags=["health"])
    app.include_router(render_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        return {"service": "ProtocolPDF", "version": __version__}

    return app
