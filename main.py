"""
VidTube API - Main Application Entry Point.

This module builds the FastAPI application for the VidTube video-sharing
backend: users publish videos, comment, like, post tweets, subscribe to
channels, curate playlists and read channel statistics.

Key Responsibilities:
- `create_app()` configures and returns the application. Collaborators (the
  database, the media storage provider and the token manager) are created in
  the lifespan and kept on `app.state`; handlers reach them through FastAPI
  dependencies.
- Set up middleware for correlation IDs, error handling, request timing and
  identity resolution.
- Mount the resource routers under `/api/v1`.

Tests build isolated instances with
`create_app(database_url="sqlite+aiosqlite://", media_provider=...)`.
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.comments import router as comments_router
from api.dashboard import router as dashboard_router
from api.health_router import health_router
from api.likes import router as likes_router
from api.playlists import router as playlists_router
from api.subscriptions import router as subscriptions_router
from api.tweets import router as tweets_router
from api.users import router as users_router
from api.videos import router as videos_router
from core.auth import JWTManager
from core.database import Database
from core.logging_config import setup_logging, get_logger
from core.middleware import (
    CorrelationMiddleware,
    ErrorHandlingMiddleware,
    IdentityMiddleware,
    PerformanceMiddleware,
    register_exception_handlers,
)
from providers.media_provider import MediaStorageProvider, create_media_provider

API_PREFIX = "/api/v1"


def create_app(
    database_url: Optional[str] = None,
    media_provider: Optional[MediaStorageProvider] = None,
    jwt_manager: Optional[JWTManager] = None,
) -> FastAPI:
    jwt_manager = jwt_manager or JWTManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging()
        logger = get_logger("api.startup")

        database = Database(database_url)
        await database.create_all()
        app.state.database = database
        logger.info(f"Database initialized ({database.dialect})")

        app.state.media_provider = media_provider or create_media_provider()
        logger.info(f"Media storage: {app.state.media_provider.source_name}")

        logger.info("VidTube API startup completed")
        yield

        # Cleanup on shutdown
        logger.info("Shutting down VidTube API")
        await app.state.media_provider.close()
        await database.dispose()
        logger.info("Cleanup completed")

    app = FastAPI(
        title="VidTube API",
        description="Backend for a video-sharing platform",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.jwt_manager = jwt_manager

    register_exception_handlers(app)

    # Added innermost first: Starlette runs the last added middleware first
    app.add_middleware(IdentityMiddleware, jwt_manager=jwt_manager)
    app.add_middleware(PerformanceMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(CorrelationMiddleware)

    # CORS middleware (required for frontend communication)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health router first (no authentication required for monitoring)
    app.include_router(health_router, prefix=API_PREFIX)

    for router in (
        users_router,
        videos_router,
        comments_router,
        likes_router,
        tweets_router,
        subscriptions_router,
        playlists_router,
        dashboard_router,
    ):
        app.include_router(router, prefix=API_PREFIX)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("ENVIRONMENT", "development") == "development",
        log_level="info",
    )
