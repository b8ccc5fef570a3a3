from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import require_actor
from core.database import get_session
from core.logging_config import get_logger
from services import views
from .responses import api_response

logger = get_logger(__name__)
router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats")
async def get_channel_stats(
    actor_id: str = Depends(require_actor), session: AsyncSession = Depends(get_session)
):
    """Total views, likes, videos and subscribers of the acting user's channel"""
    stats = await views.get_channel_stats(session, actor_id)
    return api_response(stats, "Channel stats fetched successfully")


@router.get("/videos")
async def get_channel_videos(
    actor_id: str = Depends(require_actor), session: AsyncSession = Depends(get_session)
):
    videos = await views.list_channel_videos(session, actor_id)
    return api_response(videos, "Channel videos fetched successfully")
