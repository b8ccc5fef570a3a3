"""
Health Router.

Public, unauthenticated health endpoint for uptime checks and container
probes. It reports the service status together with database connectivity
and the configured media storage backend.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from core.database import get_database_info
from core.logging_config import get_logger
from providers.media_provider import MediaStorageProvider
from .dependencies import get_media_provider
from .responses import api_response

logger = get_logger(__name__)

health_router = APIRouter(tags=["Health"])


@health_router.get("/healthcheck")
async def health_check(
    database: Dict[str, Any] = Depends(get_database_info),
    media: MediaStorageProvider = Depends(get_media_provider),
):
    """
    Basic health check endpoint (no authentication required)

    Returns:
        Envelope with status, timestamp, database and media storage info.
        The status is "degraded" when the database cannot be reached.
    """
    logger.debug("Health check requested")

    healthy = database["connection_healthy"]
    return api_response(
        {
            "status": "healthy" if healthy else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": "1.0.0",
            "service": "VidTube API",
            "database": database,
            "media_storage": media.source_name,
        },
        "OK" if healthy else "Database unavailable",
    )
