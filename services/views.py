"""
Aggregated read views.

Each function assembles one response shape with a `ViewPipeline`: the
primary rows, the owner summary, counts and per-actor flags all come from a
single statement. `actor_id` is the acting user, or None for anonymous
requests; every per-actor flag is False for anonymous requests.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.exceptions import NotFoundError
from core.logging_config import log_function_call
from core.models import (
    Comment,
    Like,
    Playlist,
    PlaylistVideo,
    Subscription,
    Tweet,
    User,
    Video,
    WatchHistoryEntry,
)
from core.ownership import authorize
from core.validation import InputValidator
from services.aggregation import ViewPipeline
from services.repository import get_or_404, increment, insert_if_absent

logger = logging.getLogger(__name__)

USER_SUMMARY_FIELDS = ("id", "username", "full_name", "avatar_url")
VIDEO_SORT_FIELDS = ("created_at", "views", "duration", "title")

VIDEO_FIELDS = (
    "id",
    "title",
    "description",
    "video_url",
    "thumbnail_url",
    "duration",
    "views",
    "is_published",
    "owner_id",
    "created_at",
    "updated_at",
)
PLAYLIST_VIDEO_FIELDS = (
    "id",
    "title",
    "description",
    "video_url",
    "thumbnail_url",
    "duration",
    "views",
    "created_at",
)
LATEST_VIDEO_FIELDS = ("id", "title", "thumbnail_url", "duration", "views", "created_at")
PLAYLIST_FIELDS = ("id", "name", "description", "owner_id", "created_at", "updated_at")


def _with_owner(pipeline: ViewPipeline, owner_column):
    return pipeline.join_one("owner", User, owner_column, USER_SUMMARY_FIELDS)


def _playlist_total_views():
    """Sum of views over the videos of the enclosing playlist row"""
    entry = aliased(PlaylistVideo)
    video = aliased(Video)
    return (
        select(func.coalesce(func.sum(video.views), 0))
        .select_from(entry)
        .join(video, video.id == entry.video_id)
        .where(entry.playlist_id == Playlist.id)
        .scalar_subquery()
    )


# Videos


@log_function_call(logger)
async def list_videos(
    session: AsyncSession,
    query: Optional[str] = None,
    owner_id: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_type: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    actor_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Published videos, optionally searched and filtered by owner, one page at a time"""
    sort_field, descending = InputValidator.validate_sort(sort_by, sort_type, VIDEO_SORT_FIELDS)

    pipeline = (
        ViewPipeline(Video)
        .match(Video.is_published.is_(True))
        .search(query, Video.title, Video.description)
        .project(*VIDEO_FIELDS)
    )
    if owner_id is not None:
        pipeline.match(Video.owner_id == owner_id)

    _with_owner(pipeline, Video.owner_id)
    pipeline.count("likes_count", Like, lambda like: (like.video_id == Video.id,))
    pipeline.member(
        "is_liked",
        Like,
        lambda like: (like.video_id == Video.id, like.liked_by == actor_id),
        actor_id,
    )
    pipeline.sort(getattr(Video, sort_field), descending=descending)

    return await pipeline.paginate(session, page=page, limit=limit)


async def get_video_detail(
    session: AsyncSession, video_id: str, actor_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    One video with its like count, the actor's like flag and its owner's
    channel summary.

    Viewing counts: the view counter is incremented atomically and the video
    is appended once to the actor's watch history, in the same transaction
    that reads the payload back, so the returned `views` includes this view.
    Unpublished videos are visible to their owner only.
    """
    video = await get_or_404(session, Video, video_id, "Video")
    if not video.is_published and not authorize(actor_id, video.owner_id):
        raise NotFoundError("Video", video_id)

    await increment(session, Video, video_id, "views")
    if actor_id is not None:
        await insert_if_absent(session, WatchHistoryEntry(user_id=actor_id, video_id=video_id))

    pipeline = ViewPipeline(Video).match(Video.id == video_id).project(*VIDEO_FIELDS)
    pipeline.count("likes_count", Like, lambda like: (like.video_id == Video.id,))
    pipeline.member(
        "is_liked",
        Like,
        lambda like: (like.video_id == Video.id, like.liked_by == actor_id),
        actor_id,
    )

    owner = _with_owner(pipeline, Video.owner_id)
    pipeline.count(
        "owner__subscribers_count",
        Subscription,
        lambda subscription: (subscription.channel_id == owner.id,),
    )
    pipeline.member(
        "owner__is_subscribed",
        Subscription,
        lambda subscription: (
            subscription.channel_id == owner.id,
            subscription.subscriber_id == actor_id,
        ),
        actor_id,
    )

    document = await pipeline.first(session)
    await session.commit()

    logger.info(
        f"Video {video_id} viewed",
        extra={"video_id": video_id, "actor_id": actor_id, "views": document["views"]},
    )
    return document


@log_function_call(logger)
async def list_channel_videos(session: AsyncSession, owner_id: str) -> List[Dict[str, Any]]:
    """All of a channel's videos, published or not, newest first"""
    pipeline = (
        ViewPipeline(Video)
        .match(Video.owner_id == owner_id)
        .project(*VIDEO_FIELDS)
        .count("likes_count", Like, lambda like: (like.video_id == Video.id,))
        .sort(Video.created_at, descending=True)
    )
    return await pipeline.all(session)


@log_function_call(logger)
async def list_liked_videos(session: AsyncSession, actor_id: str) -> List[Dict[str, Any]]:
    """Videos the actor liked, most recently liked first"""
    pipeline = (
        ViewPipeline(Video)
        .join(Like, and_(Like.video_id == Video.id, Like.liked_by == actor_id))
        .match(or_(Video.is_published.is_(True), Video.owner_id == actor_id))
        .project(*VIDEO_FIELDS)
        .field("liked_at", Like.created_at)
        .sort(Like.created_at, descending=True)
    )
    _with_owner(pipeline, Video.owner_id)
    return await pipeline.all(session)


@log_function_call(logger)
async def get_watch_history(session: AsyncSession, actor_id: str) -> List[Dict[str, Any]]:
    """Videos the actor watched, in the order they were first watched"""
    pipeline = (
        ViewPipeline(Video)
        .join(
            WatchHistoryEntry,
            and_(WatchHistoryEntry.video_id == Video.id, WatchHistoryEntry.user_id == actor_id),
        )
        .project(*VIDEO_FIELDS)
        .sort(WatchHistoryEntry.position, descending=False)
    )
    _with_owner(pipeline, Video.owner_id)
    return await pipeline.all(session)


# Comments and tweets


@log_function_call(logger)
async def list_video_comments(
    session: AsyncSession,
    video_id: str,
    page: int = 1,
    limit: int = 10,
    actor_id: Optional[str] = None,
) -> Dict[str, Any]:
    await get_or_404(session, Video, video_id, "Video")

    pipeline = (
        ViewPipeline(Comment)
        .match(Comment.video_id == video_id)
        .project("id", "content", "video_id", "created_at", "updated_at")
        .count("likes_count", Like, lambda like: (like.comment_id == Comment.id,))
        .member(
            "is_liked",
            Like,
            lambda like: (like.comment_id == Comment.id, like.liked_by == actor_id),
            actor_id,
        )
        .sort(Comment.created_at, descending=True)
    )
    _with_owner(pipeline, Comment.owner_id)
    return await pipeline.paginate(session, page=page, limit=limit)


@log_function_call(logger)
async def list_user_tweets(
    session: AsyncSession, user_id: str, actor_id: Optional[str] = None
) -> List[Dict[str, Any]]:
    await get_or_404(session, User, user_id, "User")

    pipeline = (
        ViewPipeline(Tweet)
        .match(Tweet.owner_id == user_id)
        .project("id", "content", "created_at", "updated_at")
        .count("likes_count", Like, lambda like: (like.tweet_id == Tweet.id,))
        .member(
            "is_liked",
            Like,
            lambda like: (like.tweet_id == Tweet.id, like.liked_by == actor_id),
            actor_id,
        )
        .sort(Tweet.created_at, descending=True)
    )
    _with_owner(pipeline, Tweet.owner_id)
    return await pipeline.all(session)


# Playlists


@log_function_call(logger)
async def list_user_playlists(session: AsyncSession, user_id: str) -> List[Dict[str, Any]]:
    await get_or_404(session, User, user_id, "User")

    pipeline = (
        ViewPipeline(Playlist)
        .match(Playlist.owner_id == user_id)
        .project(*PLAYLIST_FIELDS)
        .count("video_count", PlaylistVideo, lambda entry: (entry.playlist_id == Playlist.id,))
        .field("total_views", _playlist_total_views())
        .sort(Playlist.created_at, descending=True)
    )
    return await pipeline.all(session)


@log_function_call(logger)
async def get_playlist_detail(session: AsyncSession, playlist_id: str) -> Dict[str, Any]:
    """A playlist with its owner, totals and videos in the order they were added"""
    pipeline = (
        ViewPipeline(Playlist)
        .match(Playlist.id == playlist_id)
        .project(*PLAYLIST_FIELDS)
        .count("video_count", PlaylistVideo, lambda entry: (entry.playlist_id == Playlist.id,))
        .field("total_views", _playlist_total_views())
    )
    _with_owner(pipeline, Playlist.owner_id)

    document = await pipeline.first(session)
    if document is None:
        raise NotFoundError("Playlist", playlist_id)

    videos = (
        ViewPipeline(Video)
        .join(
            PlaylistVideo,
            and_(PlaylistVideo.video_id == Video.id, PlaylistVideo.playlist_id == playlist_id),
        )
        .project(*PLAYLIST_VIDEO_FIELDS)
        .sort(PlaylistVideo.position, descending=False)
    )
    document["videos"] = await videos.all(session)
    return document


# Subscriptions


@log_function_call(logger)
async def list_channel_subscribers(
    session: AsyncSession, channel_id: str, actor_id: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    Users subscribed to a channel. `subscribed_to` tells whether the channel
    subscribes back to that user; `is_subscribed` whether the actor does.
    """
    await get_or_404(session, User, channel_id, "Channel")

    pipeline = (
        ViewPipeline(User)
        .join(
            Subscription,
            and_(Subscription.subscriber_id == User.id, Subscription.channel_id == channel_id),
        )
        .project(*USER_SUMMARY_FIELDS)
        .field("subscribed_at", Subscription.created_at)
        .count(
            "subscribers_count",
            Subscription,
            lambda subscription: (subscription.channel_id == User.id,),
        )
        .member(
            "subscribed_to",
            Subscription,
            lambda subscription: (
                subscription.subscriber_id == channel_id,
                subscription.channel_id == User.id,
            ),
            channel_id,
        )
        .member(
            "is_subscribed",
            Subscription,
            lambda subscription: (
                subscription.subscriber_id == actor_id,
                subscription.channel_id == User.id,
            ),
            actor_id,
        )
        .sort(Subscription.created_at, descending=True)
    )
    return await pipeline.all(session)


@log_function_call(logger)
async def list_subscribed_channels(
    session: AsyncSession, subscriber_id: str
) -> List[Dict[str, Any]]:
    """Channels a user subscribes to, each with its latest published video or None"""
    await get_or_404(session, User, subscriber_id, "User")

    def latest_published(video):
        newest = aliased(Video)
        newest_id = (
            select(newest.id)
            .where(newest.owner_id == User.id, newest.is_published.is_(True))
            .order_by(newest.created_at.desc(), newest.id.desc())
            .limit(1)
            .scalar_subquery()
        )
        return (video.id == newest_id,)

    pipeline = (
        ViewPipeline(User)
        .join(
            Subscription,
            and_(Subscription.channel_id == User.id, Subscription.subscriber_id == subscriber_id),
        )
        .project(*USER_SUMMARY_FIELDS)
        .field("subscribed_at", Subscription.created_at)
        .sort(Subscription.created_at, descending=True)
    )
    pipeline.join_one(
        "latest_video",
        Video,
        User.id,
        LATEST_VIDEO_FIELDS,
        foreign="owner_id",
        extra=latest_published,
        empty=lambda: None,
    )
    return await pipeline.all(session)


# Dashboard


@log_function_call(logger)
async def get_channel_stats(session: AsyncSession, owner_id: str) -> Dict[str, int]:
    """Totals for a channel; every figure is 0 when there is nothing to count"""
    channel_videos = select(Video.id).where(Video.owner_id == owner_id)

    pipeline = (
        ViewPipeline(User)
        .match(User.id == owner_id)
        .project("id")
        .total("total_views", Video, "views", lambda video: (video.owner_id == User.id,))
        .count("total_likes", Like, lambda like: (like.video_id.in_(channel_videos),))
        .count("total_videos", Video, lambda video: (video.owner_id == User.id,))
        .count(
            "total_subscribers",
            Subscription,
            lambda subscription: (subscription.channel_id == User.id,),
        )
    )
    document = await pipeline.first(session) or {}

    return {
        name: int(document.get(name) or 0)
        for name in ("total_views", "total_likes", "total_videos", "total_subscribers")
    }
