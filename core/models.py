"""
Core data models for the VidTube API

SQLModel tables for the platform's entities. Relation tables (likes,
subscriptions, playlist membership, watch history) carry unique constraints on
their natural keys so that "insert if absent" can be done atomically by the
store.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import CheckConstraint, Column, Text, UniqueConstraint
from sqlmodel import SQLModel, Field


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """
    Registered user. Every user is also a channel others can subscribe to.
    """

    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    username: str = Field(index=True, unique=True, max_length=64)
    full_name: str = Field(max_length=255)
    email: str = Field(index=True, unique=True, max_length=254)
    password_hash: str = Field(max_length=255)
    avatar_url: Optional[str] = Field(default=None, max_length=1024)
    cover_image_url: Optional[str] = Field(default=None, max_length=1024)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Video(SQLModel, table=True):
    __tablename__ = "videos"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    owner_id: str = Field(foreign_key="users.id", index=True, max_length=36)
    title: str = Field(max_length=255)
    description: str = Field(default="", sa_column=Column(Text, nullable=False))
    video_url: str = Field(max_length=1024)
    video_public_id: Optional[str] = Field(default=None, max_length=255)
    thumbnail_url: str = Field(max_length=1024)
    thumbnail_public_id: Optional[str] = Field(default=None, max_length=255)
    duration: float = Field(default=0.0, ge=0)
    views: int = Field(default=0, ge=0)
    is_published: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)


class Comment(SQLModel, table=True):
    __tablename__ = "comments"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    content: str = Field(sa_column=Column(Text, nullable=False))
    owner_id: str = Field(foreign_key="users.id", index=True, max_length=36)
    video_id: str = Field(foreign_key="videos.id", index=True, max_length=36)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)


class Tweet(SQLModel, table=True):
    __tablename__ = "tweets"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    content: str = Field(sa_column=Column(Text, nullable=False))
    owner_id: str = Field(foreign_key="users.id", index=True, max_length=36)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)


class Like(SQLModel, table=True):
    """
    A like by one user on exactly one of a video, a comment or a tweet.
    """

    __tablename__ = "likes"
    __table_args__ = (
        UniqueConstraint("liked_by", "video_id", name="uq_likes_user_video"),
        UniqueConstraint("liked_by", "comment_id", name="uq_likes_user_comment"),
        UniqueConstraint("liked_by", "tweet_id", name="uq_likes_user_tweet"),
        CheckConstraint(
            "(CASE WHEN video_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN comment_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN tweet_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_likes_single_target",
        ),
    )

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    liked_by: str = Field(foreign_key="users.id", index=True, max_length=36)
    video_id: Optional[str] = Field(
        default=None, foreign_key="videos.id", index=True, max_length=36
    )
    comment_id: Optional[str] = Field(
        default=None, foreign_key="comments.id", index=True, max_length=36
    )
    tweet_id: Optional[str] = Field(
        default=None, foreign_key="tweets.id", index=True, max_length=36
    )
    created_at: datetime = Field(default_factory=utc_now)


class Subscription(SQLModel, table=True):
    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint(
            "subscriber_id", "channel_id", name="uq_subscriptions_subscriber_channel"
        ),
    )

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    subscriber_id: str = Field(foreign_key="users.id", index=True, max_length=36)
    channel_id: str = Field(foreign_key="users.id", index=True, max_length=36)
    created_at: datetime = Field(default_factory=utc_now)


class Playlist(SQLModel, table=True):
    __tablename__ = "playlists"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    owner_id: str = Field(foreign_key="users.id", index=True, max_length=36)
    name: str = Field(max_length=255)
    description: str = Field(default="", sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class PlaylistVideo(SQLModel, table=True):
    """
    Membership of a video in a playlist. The autoincrement key records
    insertion order; the unique constraint suppresses duplicates.
    """

    __tablename__ = "playlist_videos"
    __table_args__ = (
        UniqueConstraint("playlist_id", "video_id", name="uq_playlist_videos_entry"),
    )

    position: Optional[int] = Field(default=None, primary_key=True)
    playlist_id: str = Field(foreign_key="playlists.id", index=True, max_length=36)
    video_id: str = Field(foreign_key="videos.id", index=True, max_length=36)
    added_at: datetime = Field(default_factory=utc_now)


class WatchHistoryEntry(SQLModel, table=True):
    """
    One video in a user's watch history, kept once per (user, video) in the
    order it was first watched.
    """

    __tablename__ = "watch_history"
    __table_args__ = (
        UniqueConstraint("user_id", "video_id", name="uq_watch_history_entry"),
    )

    position: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True, max_length=36)
    video_id: str = Field(foreign_key="videos.id", index=True, max_length=36)
    watched_at: datetime = Field(default_factory=utc_now)
