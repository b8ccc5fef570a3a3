from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import get_optional_actor, require_actor
from core.database import get_session
from core.logging_config import get_logger
from core.validation import InputValidator
from services import views
from services.tweets import TweetService
from .dependencies import get_tweet_service
from .responses import api_response

logger = get_logger(__name__)
router = APIRouter(prefix="/tweets", tags=["Tweets"])


class TweetRequest(BaseModel):
    content: Optional[str] = None


@router.post("")
async def create_tweet(
    request: TweetRequest,
    actor_id: str = Depends(require_actor),
    tweets: TweetService = Depends(get_tweet_service),
):
    tweet = await tweets.create(actor_id, request.content)
    return api_response(tweet, "Tweet created successfully", status_code=201)


@router.get("/user/{user_id}")
async def get_user_tweets(
    user_id: str,
    actor_id: Optional[str] = Depends(get_optional_actor),
    session: AsyncSession = Depends(get_session),
):
    user_id = InputValidator.validate_id(user_id, "user_id")
    result = await views.list_user_tweets(session, user_id, actor_id)
    return api_response(result, "Tweets fetched successfully")


@router.patch("/{tweet_id}")
async def update_tweet(
    tweet_id: str,
    request: TweetRequest,
    actor_id: str = Depends(require_actor),
    tweets: TweetService = Depends(get_tweet_service),
):
    tweet_id = InputValidator.validate_id(tweet_id, "tweet_id")
    tweet = await tweets.update(tweet_id, actor_id, request.content)
    return api_response(tweet, "Tweet updated successfully")


@router.delete("/{tweet_id}")
async def delete_tweet(
    tweet_id: str,
    actor_id: str = Depends(require_actor),
    tweets: TweetService = Depends(get_tweet_service),
):
    tweet_id = InputValidator.validate_id(tweet_id, "tweet_id")
    await tweets.delete(tweet_id, actor_id)
    return api_response({}, "Tweet deleted successfully")
