import logging

from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import log_function_call
from core.models import Like, Tweet
from core.ownership import ensure_owner
from core.validation import InputValidator
from services.repository import apply_changes, delete_where, get_or_404

logger = logging.getLogger(__name__)


class TweetService:
    """Short text posts"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @log_function_call(logger)
    async def create(self, actor_id: str, content: str) -> Tweet:
        content = InputValidator.require_text(content, "content")
        tweet = Tweet(content=content, owner_id=actor_id)
        self.session.add(tweet)
        await self.session.commit()
        return tweet

    @log_function_call(logger)
    async def update(self, tweet_id: str, actor_id: str, content: str) -> Tweet:
        content = InputValidator.require_text(content, "content")
        tweet = await get_or_404(self.session, Tweet, tweet_id, "Tweet")
        ensure_owner(actor_id, tweet.owner_id, "edit this tweet")

        await apply_changes(self.session, tweet, content=content)
        await self.session.commit()
        return tweet

    @log_function_call(logger)
    async def delete(self, tweet_id: str, actor_id: str) -> None:
        tweet = await get_or_404(self.session, Tweet, tweet_id, "Tweet")
        ensure_owner(actor_id, tweet.owner_id, "delete this tweet")

        await delete_where(self.session, Like, Like.tweet_id == tweet_id)
        await self.session.delete(tweet)
        await self.session.commit()
        logger.info(f"Deleted tweet {tweet_id}", extra={"tweet_id": tweet_id})
