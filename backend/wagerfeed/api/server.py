"""
FastAPI application factory for Wagerfeed.

- Initializes FastAPI with lifespan management
- Opens the Supabase client and wires services onto ``app.state``
- Starts the Change Detector schedule
- Configures CORS for frontend integration
- Provides health check endpoints
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wagerfeed import __version__
from wagerfeed.api.errors import register_exception_handlers
from wagerfeed.api.routes import bets_router, user_router, websocket_router
from wagerfeed.config import Settings, get_settings
from wagerfeed.container import ServiceContainer, build_container
from wagerfeed.observability import initialize_logfire
from wagerfeed.repositories import SupabaseBetRepository
from wagerfeed.scheduler import create_scheduler
from wagerfeed.services.supabase import SupabaseClient

logger = logging.getLogger(__name__)


def _lifespan(settings: Settings, container: Optional[ServiceContainer]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        With an injected container the caller owns its dependencies and
        drives the detector; nothing is opened or scheduled here.
        """
        if container is not None:
            app.state.container = container
            yield
            container.close()
            return

        settings.validate_for_server()
        logger.info(f"Starting Wagerfeed API Server ({settings.environment})")

        async with SupabaseClient(
            settings.supabase_url,
            settings.supabase_service_role_key,
            config=settings.supabase,
        ) as client:
            app.state.container = services = build_container(
                settings,
                repository=SupabaseBetRepository(client),
                verifier=client,
                signer=client,
            )

            scheduler = None
            if settings.detector.enabled:
                scheduler = create_scheduler(settings, services.detector)
                scheduler.start()
            else:
                logger.info("Change detector disabled")

            logger.info("Wagerfeed API Server startup complete")
            try:
                yield
            finally:
                logger.info("Shutting down Wagerfeed API Server")
                if scheduler is not None:
                    scheduler.shutdown(wait=False)
                services.close()

    return lifespan


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Wagerfeed API",
        description="Social betting feed, bet lifecycle and live change notifications",
        version=__version__,
        lifespan=_lifespan(settings, container),
        debug=settings.server.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health_check() -> Dict[str, str]:
        """Health check endpoint for load balancers and monitoring."""
        return {
            "status": "ok",
            "service": "wagerfeed-api",
            "version": __version__,
            "environment": settings.environment,
        }

    @app.get("/", tags=["Root"])
    async def root() -> Dict[str, str]:
        """Root endpoint - API information."""
        return {
            "name": "Wagerfeed API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    app.include_router(bets_router)
    app.include_router(user_router)
    app.include_router(websocket_router)

    if container is None:
        initialize_logfire(settings, app)

    return app
