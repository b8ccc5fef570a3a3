"""
Likes and subscriptions.

Each toggle first makes sure its target exists, then flips the relation
through the toggle engine.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from core.models import Comment, Tweet, User, Video
from services.repository import get_or_404
from services.toggle import (
    COMMENT_LIKE,
    SUBSCRIPTION,
    TWEET_LIKE,
    VIDEO_LIKE,
    ToggleResult,
    toggle_relation,
)

logger = logging.getLogger(__name__)


class EngagementService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def toggle_video_like(self, video_id: str, actor_id: str) -> ToggleResult:
        await get_or_404(self.session, Video, video_id, "Video")
        return await toggle_relation(self.session, VIDEO_LIKE, video_id, actor_id)

    async def toggle_comment_like(self, comment_id: str, actor_id: str) -> ToggleResult:
        await get_or_404(self.session, Comment, comment_id, "Comment")
        return await toggle_relation(self.session, COMMENT_LIKE, comment_id, actor_id)

    async def toggle_tweet_like(self, tweet_id: str, actor_id: str) -> ToggleResult:
        await get_or_404(self.session, Tweet, tweet_id, "Tweet")
        return await toggle_relation(self.session, TWEET_LIKE, tweet_id, actor_id)

    async def toggle_subscription(self, channel_id: str, actor_id: str) -> ToggleResult:
        await get_or_404(self.session, User, channel_id, "Channel")
        return await toggle_relation(self.session, SUBSCRIPTION, channel_id, actor_id)
