"""
Unit tests for the mutation services: ownership guards, cascading deletes,
media handling and playlist membership.
"""

import io
import os
from unittest.mock import AsyncMock, call

import pytest
from fastapi import UploadFile
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from core.auth import JWTManager
from core.exceptions import (
    AuthenticationError,
    ForbiddenError,
    MediaStorageError,
    NotFoundError,
    ValidationError,
)
from core.models import (
    Comment,
    Like,
    Playlist,
    PlaylistVideo,
    Tweet,
    Video,
    WatchHistoryEntry,
    new_id,
)
from providers.media_provider import MediaAsset
from services.comments import CommentService
from services.engagement import EngagementService
from services.playlists import PlaylistService
from services.toggle import COMMENT_LIKE, VIDEO_LIKE, toggle_relation
from services.tweets import TweetService
from services.users import UserService
from services.videos import VideoService


async def _count(session, model, *criteria):
    result = await session.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar_one()


def _upload(name: str, content: bytes = b"bytes") -> UploadFile:
    return UploadFile(file=io.BytesIO(content), filename=name)


@pytest.mark.unit
class TestVideoService:
    async def test_publish_stores_media(self, session, make_user, media_provider):
        owner = await make_user("alice")
        service = VideoService(session, media_provider)

        video = await service.publish(
            owner.id, "  Title ", "Description", _upload("clip.mp4"), _upload("thumb.png")
        )

        assert video.title == "Title"
        assert video.owner_id == owner.id
        assert video.video_url.startswith("/media/video/")
        assert video.thumbnail_url.startswith("/media/image/")
        assert os.path.exists(os.path.join(media_provider.storage_dir, video.video_public_id))
        assert await _count(session, Video) == 1

    async def test_publish_requires_files_and_text(self, session, make_user, media_provider):
        owner = await make_user("alice")
        service = VideoService(session, media_provider)

        with pytest.raises(ValidationError, match="title is required"):
            await service.publish(owner.id, " ", "d", _upload("a.mp4"), _upload("b.png"))
        with pytest.raises(ValidationError, match="thumbnail is required"):
            await service.publish(owner.id, "t", "d", _upload("a.mp4"), None)

    async def test_failed_thumbnail_upload_discards_video_file(self, session, make_user):
        owner = await make_user("alice")
        media = AsyncMock()
        media.upload.side_effect = [
            MediaAsset(url="/v", public_id="video/1", duration=3.0),
            MediaStorageError("upload", "boom"),
        ]
        service = VideoService(session, media)

        with pytest.raises(MediaStorageError):
            await service.publish(owner.id, "t", "d", _upload("a.mp4"), _upload("b.png"))

        media.delete.assert_awaited_once_with("video/1", kind="video")
        assert await _count(session, Video) == 0

    async def test_failed_commit_discards_uploaded_files(self, session, make_user, monkeypatch):
        owner = await make_user("alice")
        media = AsyncMock()
        media.upload.side_effect = [
            MediaAsset(url="/v", public_id="video/1", duration=3.0),
            MediaAsset(url="/t", public_id="image/1"),
        ]
        monkeypatch.setattr(session, "commit", AsyncMock(side_effect=SQLAlchemyError("down")))

        with pytest.raises(SQLAlchemyError):
            await VideoService(session, media).publish(
                owner.id, "t", "d", _upload("a.mp4"), _upload("b.png")
            )

        media.delete.assert_has_awaits(
            [call("video/1", kind="video"), call("image/1", kind="image")]
        )
        assert await _count(session, Video) == 0

    async def test_failed_update_commit_discards_new_thumbnail(
        self, session, make_user, make_video, monkeypatch
    ):
        owner = await make_user("alice")
        video = await make_video(owner.id, thumbnail_public_id="image/old")
        media = AsyncMock()
        media.upload.return_value = MediaAsset(url="/t2", public_id="image/new")
        monkeypatch.setattr(session, "commit", AsyncMock(side_effect=SQLAlchemyError("down")))

        with pytest.raises(SQLAlchemyError):
            await VideoService(session, media).update(video.id, owner.id, thumbnail=_upload("c.png"))

        media.delete.assert_awaited_once_with("image/new", kind="image")

    async def test_delete_cascades(self, session, make_user, make_video, media_provider):
        owner = await make_user("alice")
        fan = await make_user("bob")
        other = await make_user("carol")
        video = await make_video(owner.id)
        keep = await make_video(owner.id)

        comments = []
        for i in range(3):
            comment = Comment(content=f"c{i}", owner_id=fan.id, video_id=video.id)
            session.add(comment)
            comments.append(comment)
        playlist = Playlist(owner_id=fan.id, name="Mix")
        session.add(playlist)
        await session.commit()

        # 2 likes on the video and 3 on its comments
        await toggle_relation(session, VIDEO_LIKE, video.id, fan.id)
        await toggle_relation(session, VIDEO_LIKE, video.id, other.id)
        for comment in comments:
            await toggle_relation(session, COMMENT_LIKE, comment.id, other.id)
        await toggle_relation(session, VIDEO_LIKE, keep.id, fan.id)
        session.add(PlaylistVideo(playlist_id=playlist.id, video_id=video.id))
        session.add(WatchHistoryEntry(user_id=fan.id, video_id=video.id))
        await session.commit()
        assert await _count(session, Like) == 6

        await VideoService(session, media_provider).delete(video.id, owner.id)

        assert await _count(session, Video) == 1
        assert await _count(session, Comment) == 0
        assert await _count(session, Like) == 1
        assert await _count(session, PlaylistVideo) == 0
        assert await _count(session, WatchHistoryEntry) == 0

    async def test_delete_by_non_owner_forbidden(self, session, make_user, make_video, media_provider):
        owner = await make_user("alice")
        intruder = await make_user("mallory")
        video = await make_video(owner.id)

        with pytest.raises(ForbiddenError):
            await VideoService(session, media_provider).delete(video.id, intruder.id)
        assert await _count(session, Video) == 1

    async def test_delete_survives_media_failure(self, session, make_user, make_video):
        owner = await make_user("alice")
        video = await make_video(owner.id, video_public_id="video/x.mp4")
        media = AsyncMock()
        media.delete.side_effect = MediaStorageError("delete", "unreachable")

        await VideoService(session, media).delete(video.id, owner.id)

        assert await _count(session, Video) == 0
        media.delete.assert_awaited_once_with("video/x.mp4", kind="video")

    async def test_update_replaces_thumbnail(self, session, make_user, media_provider):
        owner = await make_user("alice")
        service = VideoService(session, media_provider)
        video = await service.publish(owner.id, "t", "d", _upload("a.mp4"), _upload("b.png"))
        old_thumbnail = video.thumbnail_public_id

        updated = await service.update(video.id, owner.id, title="New", thumbnail=_upload("c.png"))

        assert updated.title == "New"
        assert updated.description == "d"
        assert updated.thumbnail_public_id != old_thumbnail
        assert not os.path.exists(os.path.join(media_provider.storage_dir, old_thumbnail))

    async def test_update_needs_a_change(self, session, make_user, make_video, media_provider):
        owner = await make_user("alice")
        video = await make_video(owner.id)

        with pytest.raises(ValidationError):
            await VideoService(session, media_provider).update(video.id, owner.id)

    async def test_toggle_publish(self, session, make_user, make_video, media_provider):
        owner = await make_user("alice")
        video = await make_video(owner.id)
        service = VideoService(session, media_provider)

        assert (await service.toggle_publish(video.id, owner.id)).is_published is False
        assert (await service.toggle_publish(video.id, owner.id)).is_published is True


@pytest.mark.unit
class TestCommentAndTweetServices:
    async def test_comment_lifecycle(self, session, make_user, make_video):
        owner = await make_user("alice")
        fan = await make_user("bob")
        video = await make_video(owner.id)
        service = CommentService(session)

        comment = await service.add(video.id, fan.id, "nice")
        with pytest.raises(ForbiddenError):
            await service.update(comment.id, owner.id, "edited by someone else")

        updated = await service.update(comment.id, fan.id, "very nice")
        assert updated.content == "very nice"

        await toggle_relation(session, COMMENT_LIKE, comment.id, owner.id)
        await service.delete(comment.id, fan.id)
        assert await _count(session, Comment) == 0
        assert await _count(session, Like) == 0

    async def test_comment_on_missing_video(self, session, make_user):
        fan = await make_user("bob")

        with pytest.raises(NotFoundError):
            await CommentService(session).add(new_id(), fan.id, "hello")

    async def test_tweet_delete_removes_likes(self, session, make_user):
        author = await make_user("alice")
        fan = await make_user("bob")
        service = TweetService(session)
        tweet = await service.create(author.id, "hello")
        await EngagementService(session).toggle_tweet_like(tweet.id, fan.id)

        with pytest.raises(ForbiddenError):
            await service.delete(tweet.id, fan.id)
        await service.delete(tweet.id, author.id)

        assert await _count(session, Tweet) == 0
        assert await _count(session, Like) == 0

    async def test_tweet_requires_content(self, session, make_user):
        author = await make_user("alice")

        with pytest.raises(ValidationError):
            await TweetService(session).create(author.id, "   ")


@pytest.mark.unit
class TestEngagementService:
    async def test_like_missing_targets(self, session, make_user):
        fan = await make_user("bob")
        service = EngagementService(session)

        with pytest.raises(NotFoundError):
            await service.toggle_video_like(new_id(), fan.id)
        with pytest.raises(NotFoundError):
            await service.toggle_tweet_like(new_id(), fan.id)
        with pytest.raises(NotFoundError):
            await service.toggle_comment_like(new_id(), fan.id)
        with pytest.raises(NotFoundError):
            await service.toggle_subscription(new_id(), fan.id)


@pytest.mark.unit
class TestPlaylistService:
    async def test_membership(self, session, make_user, make_video):
        owner = await make_user("alice")
        video = await make_video(owner.id)
        service = PlaylistService(session)
        playlist = await service.create(owner.id, "Mix")

        assert await service.add_video(playlist.id, video.id, owner.id) is True
        assert await service.add_video(playlist.id, video.id, owner.id) is False
        assert await _count(session, PlaylistVideo) == 1

        assert await service.remove_video(playlist.id, video.id, owner.id) is True
        assert await service.remove_video(playlist.id, video.id, owner.id) is False

    async def test_only_playlist_owner_changes_membership(self, session, make_user, make_video):
        owner = await make_user("alice")
        intruder = await make_user("mallory")
        video = await make_video(intruder.id)
        service = PlaylistService(session)
        playlist = await service.create(owner.id, "Mix")

        with pytest.raises(ForbiddenError):
            await service.add_video(playlist.id, video.id, intruder.id)

        # Published videos of other channels may be added
        assert await service.add_video(playlist.id, video.id, owner.id) is True

    async def test_unpublished_foreign_video_cannot_be_added(self, session, make_user, make_video):
        owner = await make_user("alice")
        other = await make_user("bob")
        draft = await make_video(other.id, is_published=False)
        service = PlaylistService(session)
        playlist = await service.create(owner.id, "Mix")

        with pytest.raises(NotFoundError):
            await service.add_video(playlist.id, draft.id, owner.id)

    async def test_update_and_delete(self, session, make_user, make_video):
        owner = await make_user("alice")
        video = await make_video(owner.id)
        service = PlaylistService(session)
        playlist = await service.create(owner.id, "Mix", "  songs ")
        await service.add_video(playlist.id, video.id, owner.id)

        updated = await service.update(playlist.id, owner.id, name="Renamed")
        assert updated.name == "Renamed"
        assert updated.description == "songs"

        await service.delete(playlist.id, owner.id)
        assert await _count(session, Playlist) == 0
        assert await _count(session, PlaylistVideo) == 0


@pytest.mark.unit
class TestUserService:
    async def test_register_and_login(self, session):
        service = UserService(session, JWTManager(secret_key="unit-secret"))

        profile = await service.register("Alice", "Alice@Example.com", "Secret123!", "Alice A")
        assert profile["username"] == "alice"
        assert profile["email"] == "alice@example.com"
        assert "password_hash" not in profile

        login = await service.login("alice@example.com", "Secret123!")
        payload = service.jwt_manager.verify_token(login["access_token"])
        assert payload["sub"] == profile["id"]
        assert login["token_type"] == "bearer"

    async def test_duplicate_username(self, session):
        service = UserService(session, JWTManager(secret_key="unit-secret"))
        await service.register("alice", "a@example.com", "Secret123!", "Alice")

        with pytest.raises(ValidationError, match="already exists"):
            await service.register("ALICE", "other@example.com", "Secret123!", "Alice")

    async def test_wrong_password(self, session):
        service = UserService(session, JWTManager(secret_key="unit-secret"))
        await service.register("alice", "a@example.com", "Secret123!", "Alice")

        with pytest.raises(AuthenticationError):
            await service.login("alice", "Wrong123!")

    async def test_weak_password(self, session):
        service = UserService(session, JWTManager(secret_key="unit-secret"))

        with pytest.raises(ValidationError):
            await service.register("alice", "a@example.com", "short", "Alice")

    async def test_profile_counts_subscribers(self, session, make_user):
        service = UserService(session, JWTManager(secret_key="unit-secret"))
        channel = await make_user("channel")
        fan = await make_user("fan")
        await EngagementService(session).toggle_subscription(channel.id, fan.id)

        profile = await service.get_profile(channel.id)

        assert profile["subscribers_count"] == 1
