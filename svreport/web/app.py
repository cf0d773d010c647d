"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from svreport.config import Settings, get_settings
from svreport.database import create_engine, create_session_factory, init_db
from svreport.store import AugmentationStore
from svreport.web.errors import register_exception_handlers

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[AugmentationStore] = None,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the database and the upstream HTTP client for the app's lifetime."""
        engine = None
        if app.state.store is None:
            settings.ensure_directories()
            engine = create_engine(settings.database_url, echo=settings.debug)
            await init_db(engine)
            app.state.store = AugmentationStore(create_session_factory(engine))
            logger.info("Database ready at %s", settings.database_url)

        app.state.http_client = httpx.AsyncClient(
            timeout=settings.upstream_timeout,
            transport=upstream_transport,
        )
        try:
            yield
        finally:
            await app.state.http_client.aclose()
            if engine is not None:
                await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan,
    )

    # ── State ─────────────────────────────────────────────────────
    app.state.settings = settings
    app.state.store = store

    # ── Middleware ────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept", "Origin"],
    )

    register_exception_handlers(app, production=settings.is_production)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for Docker."""
        return {
            "status": "healthy",
            "environment": settings.environment,
            "upstream_configured": settings.upstream_configured,
        }

    # ── Routers (local tables first, then the proxy catch-all) ────
    from svreport.web.routers.open_source import router as open_source_router
    from svreport.web.routers.remarks import router as remarks_router

    app.include_router(open_source_router)
    app.include_router(remarks_router)

    if settings.upstream_configured:
        from svreport.web.routers.proxy import router as proxy_router

        app.include_router(proxy_router)
    else:
        logger.warning("No upstream URL configured; inventory requests will not be proxied")

    if settings.is_production:
        from svreport.web.spa import create_spa_router

        logger.info("Production mode: serving static files from %s", settings.static_dir)
        app.include_router(create_spa_router(settings.static_dir))
    else:
        logger.info("Development mode: run the frontend dev server at %s", settings.dev_server_url)

    return app
