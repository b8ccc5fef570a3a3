"""
Like Endpoints.

Every toggle validates the identifier of its own target, checks that the
target exists and then flips the like. The response tells whether the like
was added or removed.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import require_actor
from core.database import get_session
from core.logging_config import get_logger
from core.validation import InputValidator
from services import views
from services.engagement import EngagementService
from services.toggle import ToggleResult
from .dependencies import get_engagement_service
from .responses import api_response

logger = get_logger(__name__)
router = APIRouter(prefix="/likes", tags=["Likes"])


def _toggle_response(result: ToggleResult, target: str):
    message = f"Like added to {target}" if result.added else f"Like removed from {target}"
    return api_response({"state": result.state, "is_liked": result.added}, message)


@router.post("/toggle/v/{video_id}")
async def toggle_video_like(
    video_id: str,
    actor_id: str = Depends(require_actor),
    engagement: EngagementService = Depends(get_engagement_service),
):
    video_id = InputValidator.validate_id(video_id, "video_id")
    result = await engagement.toggle_video_like(video_id, actor_id)
    return _toggle_response(result, "video")


@router.post("/toggle/c/{comment_id}")
async def toggle_comment_like(
    comment_id: str,
    actor_id: str = Depends(require_actor),
    engagement: EngagementService = Depends(get_engagement_service),
):
    comment_id = InputValidator.validate_id(comment_id, "comment_id")
    result = await engagement.toggle_comment_like(comment_id, actor_id)
    return _toggle_response(result, "comment")


@router.post("/toggle/t/{tweet_id}")
async def toggle_tweet_like(
    tweet_id: str,
    actor_id: str = Depends(require_actor),
    engagement: EngagementService = Depends(get_engagement_service),
):
    tweet_id = InputValidator.validate_id(tweet_id, "tweet_id")
    result = await engagement.toggle_tweet_like(tweet_id, actor_id)
    return _toggle_response(result, "tweet")


@router.get("/videos")
async def get_liked_videos(
    actor_id: str = Depends(require_actor), session: AsyncSession = Depends(get_session)
):
    liked = await views.list_liked_videos(session, actor_id)
    return api_response(liked, "Liked videos fetched successfully")
