from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import get_optional_actor, require_actor
from core.database import get_session
from core.logging_config import get_logger
from core.validation import InputValidator
from services import views
from services.engagement import EngagementService
from .dependencies import get_engagement_service
from .responses import api_response

logger = get_logger(__name__)
router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


@router.post("/c/{channel_id}")
async def toggle_subscription(
    channel_id: str,
    actor_id: str = Depends(require_actor),
    engagement: EngagementService = Depends(get_engagement_service),
):
    channel_id = InputValidator.validate_id(channel_id, "channel_id")
    result = await engagement.toggle_subscription(channel_id, actor_id)

    message = "Subscribed successfully" if result.added else "Unsubscribed successfully"
    return api_response({"state": result.state, "is_subscribed": result.added}, message)


@router.get("/c/{channel_id}")
async def get_channel_subscribers(
    channel_id: str,
    actor_id: Optional[str] = Depends(get_optional_actor),
    session: AsyncSession = Depends(get_session),
):
    """Users subscribed to the channel"""
    channel_id = InputValidator.validate_id(channel_id, "channel_id")
    subscribers = await views.list_channel_subscribers(session, channel_id, actor_id)
    return api_response(subscribers, "Subscribers fetched successfully")


@router.get("/u/{subscriber_id}")
async def get_subscribed_channels(
    subscriber_id: str, session: AsyncSession = Depends(get_session)
):
    """Channels the user subscribes to"""
    subscriber_id = InputValidator.validate_id(subscriber_id, "subscriber_id")
    channels = await views.list_subscribed_channels(session, subscriber_id)
    return api_response(channels, "Subscribed channels fetched successfully")
