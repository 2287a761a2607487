"""
WebSocket Relay main application.

Builds the FastAPI application around a RelayServer: WebSocket route,
health endpoints, CORS for the development client and the built client
served as static files in production.

Run with:
    python -m ws_relay
    uvicorn ws_relay.main:create_app --factory
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from shared.config.logging import setup_logging, ws_relay_logger as logger
from shared.config.settings import Settings, get_settings
from ws_relay import __version__
from ws_relay.apps.chat import ChatHandler
from ws_relay.components.core.protocol import RelayHandler
from ws_relay.server import RelayServer

SERVICE_NAME = "ws-relay"


def create_app(
    handler: RelayHandler[Any] | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        handler: Application logic to run (defaults to the demo chat room).
        settings: Settings to use (defaults to environment settings).

    Returns:
        FastAPI app with the relay available as app.state.relay.
    """
    settings = settings or get_settings()

    relay = RelayServer(
        handler or ChatHandler(),
        max_connections=settings.ws_max_total_connections,
        max_message_size=settings.ws_max_message_size,
        outbound_queue_size=settings.ws_outbound_queue_size,
        accept_timeout=settings.ws_accept_timeout,
    )

    # =========================================================================
    # Lifespan
    # =========================================================================

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Closes every relay connection on shutdown before the server stops.
        """
        setup_logging(settings)

        for error in settings.validate_production_settings():
            logger.warning("Configuration problem", error=error)

        logger.info(
            "Starting WebSocket Relay",
            host=settings.host,
            port=settings.port,
            ws_path=settings.ws_path,
            env=settings.environment,
        )

        yield

        logger.info("Shutting down WebSocket Relay", clients=relay.get_client_count())
        relay.close()
        await relay.wait_closed()
        logger.info("WebSocket Relay closed")

    # =========================================================================
    # FastAPI Application
    # =========================================================================

    app = FastAPI(
        title="WebSocket Relay",
        description="Real-time message relay with pluggable application logic",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.relay = relay
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/health")
    def health_check():
        """Basic health check endpoint."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "clients": relay.get_client_count(),
        }

    @app.get("/health/detailed")
    def detailed_health_check():
        """Detailed health check with relay statistics."""
        try:
            stats = relay.get_stats()
        except Exception as e:
            logger.warning("Failed to get stats in health check", error=str(e))
            stats = {"error": "stats_unavailable"}

        healthy = not relay.is_closing and "error" not in stats
        checks = {
            "status": "healthy" if healthy else "degraded",
            "service": SERVICE_NAME,
            "version": app.version,
            "environment": settings.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "relay": stats,
        }
        if not healthy:
            return JSONResponse(content=checks, status_code=503)
        return checks

    if not settings.is_production:

        @app.get("/")
        def root():
            """Service info for development."""
            return {
                "message": "WebSocket Relay Server",
                "status": "running",
                "endpoints": {
                    "health": "/health",
                    "websocket": f"ws://{settings.host}:{settings.port}{settings.ws_path}",
                    "client": settings.client_url,
                },
            }

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    relay.attach(app, settings.ws_path)

    # =========================================================================
    # Static client (production)
    # =========================================================================

    # Mounted last: a mount at "/" also matches WebSocket scopes
    if settings.is_production:
        static_dir = Path(settings.static_dir)
        if static_dir.is_dir():
            app.mount("/", StaticFiles(directory=static_dir, html=True), name="client")
            logger.info("Serving static files", path=str(static_dir.resolve()))
        else:
            logger.warning("Static directory not found", path=str(static_dir))

    return app


# =============================================================================
# Development entry point
# =============================================================================


def run() -> None:
    """Run the relay with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "ws_relay.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug and not settings.is_production,
    )


if __name__ == "__main__":
    run()
