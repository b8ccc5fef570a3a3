from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import JWTManager
from core.database import get_session
from providers.media_provider import MediaStorageProvider
from services.comments import CommentService
from services.engagement import EngagementService
from services.playlists import PlaylistService
from services.tweets import TweetService
from services.users import UserService
from services.videos import VideoService


def get_media_provider(request: Request) -> MediaStorageProvider:
    return request.app.state.media_provider


def get_jwt_manager(request: Request) -> JWTManager:
    return request.app.state.jwt_manager


def get_user_service(
    session: AsyncSession = Depends(get_session),
    jwt_manager: JWTManager = Depends(get_jwt_manager),
) -> UserService:
    return UserService(session, jwt_manager)


def get_video_service(
    session: AsyncSession = Depends(get_session),
    media: MediaStorageProvider = Depends(get_media_provider),
) -> VideoService:
    return VideoService(session, media)


def get_comment_service(session: AsyncSession = Depends(get_session)) -> CommentService:
    return CommentService(session)


def get_tweet_service(session: AsyncSession = Depends(get_session)) -> TweetService:
    return TweetService(session)


def get_playlist_service(session: AsyncSession = Depends(get_session)) -> PlaylistService:
    return PlaylistService(session)


def get_engagement_service(session: AsyncSession = Depends(get_session)) -> EngagementService:
    return EngagementService(session)
