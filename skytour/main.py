# skytour/main.py
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - FastAPI application entrypoint
-----------------------------------------------
This file wires everything together:

- Sets up central logging.
- Creates the FastAPI app with a lifespan that builds (and later shuts down)
  the `TourRuntime`.
- Adds CORS for the browser UI.
- Mounts routers:
    * /ws/tour    (WebSocket) -> passenger tour channel
    * /api/chat/* (HTTP)      -> REST mirror of the tour flow
- Exposes an ASGI `app` object for uvicorn.

Typical run command (dev):

    uvicorn skytour.main:app --host 0.0.0.0 --port 3001 --reload

"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from skytour.core.config import Settings, settings as default_settings
from skytour.core.runtime import TourRuntime
from skytour.routers.chat import router as chat_router
from skytour.routers.ws import router as ws_router
from skytour.utils import get_logger, setup_logging

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Pass an explicit `settings` (tests do); otherwise the environment-driven
    default instance is used.
    """
    settings = settings or default_settings
    setup_logging(debug=settings.debug, log_frames=settings.log_frames)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        runtime = TourRuntime(settings)
        app.state.runtime = runtime
        logger.info(
            "Sky Tour relay starting (env=%s, tour_guide_flow=%s, flight_info_flow=%s, goal_webhook=%s)",
            settings.environment,
            settings.tour_guide_configured,
            settings.flight_info_configured,
            bool(settings.goal_webhook_url),
        )
        try:
            yield
        finally:
            await runtime.shutdown()

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # The browser UI runs on a different port in development.
    if settings.environment != "production":
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=False,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(ws_router)
    app.include_router(chat_router)

    @app.get("/", tags=["meta"])
    async def root():
        return {
            "name": settings.app_name,
            "environment": settings.environment,
            "message": "Sky Tour relay is running.",
        }

    @app.get("/health", tags=["meta"])
    @app.get("/api/health", tags=["meta"], include_in_schema=False)
    async def health_check():
        runtime: TourRuntime = app.state.runtime
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.environment,
            "tour_guide_flow_configured": settings.tour_guide_configured,
            "flight_info_flow_configured": settings.flight_info_configured,
            "active_sessions": len(runtime.sessions),
            "open_channels": runtime.channel_count,
        }

    logger.info("FastAPI app created (env=%s)", settings.environment)
    return app


# ASGI app for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "skytour.main:app",
        host=default_settings.api_host,
        port=default_settings.api_port,
        reload=(default_settings.environment != "production"),
    )
