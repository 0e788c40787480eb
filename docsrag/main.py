"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from docsrag.api.v1.router import api_router
from docsrag.core.config import Settings, get_settings
from docsrag.observability import RequestLoggingMiddleware, configure_logging, get_metrics_backend
from docsrag.services.factory import KnowledgeStack, build_knowledge_stack


def create_app(
    settings: Settings | None = None,
    stack: KnowledgeStack | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use (defaults to environment settings).
        stack: Prebuilt knowledge stack; built from settings at startup
            when omitted.
    """
    settings = settings or get_settings()
    configure_logging(settings)
    metrics_backend = get_metrics_backend()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan events."""
        # Startup
        knowledge = stack or build_knowledge_stack(settings, metrics_backend)
        app.state.knowledge_base = knowledge.knowledge_base
        app.state.pipeline = knowledge.pipeline
        yield
        # Shutdown
        await knowledge.close()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware, metrics=metrics_backend)

    # Include API router
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "version": settings.app_version}

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> PlainTextResponse:
        """Prometheus-style metrics endpoint."""
        return PlainTextResponse(metrics_backend.render_prometheus())

    return app


app = create_app()
