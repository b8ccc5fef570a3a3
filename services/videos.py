"""
Video Service.

Publishing, editing and deleting videos. Media files go through the
`MediaStorageProvider`; only their URLs and public ids are stored. Every
mutation is guarded by the ownership check, and a delete removes the video
together with everything that references it in one transaction.
"""

import logging
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ValidationError
from core.logging_config import log_function_call
from core.models import Comment, Like, PlaylistVideo, Video, WatchHistoryEntry
from core.ownership import ensure_owner
from core.validation import InputValidator
from providers.media_provider import MediaStorageProvider
from services.media import discard_media, store_upload
from services.repository import apply_changes, delete_where, get_or_404

logger = logging.getLogger(__name__)


def _require_file(upload: Optional[UploadFile], field: str) -> UploadFile:
    if upload is None or not upload.filename:
        raise ValidationError(f"{field} is required", field=field)
    return upload


class VideoService:
    """Video lifecycle operations for one request"""

    def __init__(self, session: AsyncSession, media: MediaStorageProvider):
        self.session = session
        self.media = media

    async def _commit_or_discard(self, uploaded) -> None:
        """Commit; if that fails, remove the files uploaded for this change"""
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            logger.error(f"Commit failed, discarding {len(uploaded)} uploaded file(s)")
            await discard_media(self.media, uploaded)
            raise

    @log_function_call(logger)
    async def publish(
        self,
        owner_id: str,
        title: str,
        description: str,
        video_file: Optional[UploadFile],
        thumbnail: Optional[UploadFile],
    ) -> Video:
        title = InputValidator.require_text(title, "title", max_length=255)
        description = InputValidator.require_text(description, "description")
        video_file = _require_file(video_file, "video_file")
        thumbnail = _require_file(thumbnail, "thumbnail")

        video_asset = await store_upload(self.media, video_file, kind="video")
        try:
            thumbnail_asset = await store_upload(self.media, thumbnail, kind="image")
        except Exception:
            await discard_media(self.media, [(video_asset.public_id, "video")])
            raise

        video = Video(
            owner_id=owner_id,
            title=title,
            description=description,
            video_url=video_asset.url,
            video_public_id=video_asset.public_id,
            thumbnail_url=thumbnail_asset.url,
            thumbnail_public_id=thumbnail_asset.public_id,
            duration=video_asset.duration or 0.0,
        )
        self.session.add(video)
        await self._commit_or_discard(
            [(video_asset.public_id, "video"), (thumbnail_asset.public_id, "image")]
        )

        logger.info(f"Published video {video.id}", extra={"video_id": video.id, "owner_id": owner_id})
        return video

    @log_function_call(logger)
    async def update(
        self,
        video_id: str,
        actor_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        thumbnail: Optional[UploadFile] = None,
    ) -> Video:
        """Replace title, description and thumbnail; fields left out are kept"""
        video = await get_or_404(self.session, Video, video_id, "Video")
        ensure_owner(actor_id, video.owner_id, "update this video")

        if title is not None:
            title = InputValidator.require_text(title, "title", max_length=255)
        if description is not None:
            description = InputValidator.require_text(description, "description")
        if title is None and description is None and (thumbnail is None or not thumbnail.filename):
            raise ValidationError("Provide a title, a description or a thumbnail to update")

        old_thumbnail = None
        uploaded = []
        changes = {"title": title, "description": description}
        if thumbnail is not None and thumbnail.filename:
            asset = await store_upload(self.media, thumbnail, kind="image")
            old_thumbnail = video.thumbnail_public_id
            uploaded.append((asset.public_id, "image"))
            changes.update(thumbnail_url=asset.url, thumbnail_public_id=asset.public_id)

        await apply_changes(self.session, video, **changes)
        await self._commit_or_discard(uploaded)

        if old_thumbnail:
            await discard_media(self.media, [(old_thumbnail, "image")])
        return video

    @log_function_call(logger)
    async def toggle_publish(self, video_id: str, actor_id: str) -> Video:
        video = await get_or_404(self.session, Video, video_id, "Video")
        ensure_owner(actor_id, video.owner_id, "change the publish status of this video")

        await apply_changes(self.session, video, is_published=not video.is_published)
        await self.session.commit()

        logger.info(
            f"Video {video_id} {'published' if video.is_published else 'unpublished'}",
            extra={"video_id": video_id},
        )
        return video

    @log_function_call(logger)
    async def delete(self, video_id: str, actor_id: str) -> None:
        """
        Delete a video with its likes, its comments and their likes, its
        playlist entries and watch history entries. Media files are removed
        once the transaction has committed.
        """
        video = await get_or_404(self.session, Video, video_id, "Video")
        ensure_owner(actor_id, video.owner_id, "delete this video")

        media = [(video.video_public_id, "video"), (video.thumbnail_public_id, "image")]
        comment_ids = select(Comment.id).where(Comment.video_id == video_id)

        await delete_where(self.session, Like, Like.comment_id.in_(comment_ids))
        await delete_where(self.session, Like, Like.video_id == video_id)
        await delete_where(self.session, Comment, Comment.video_id == video_id)
        await delete_where(self.session, PlaylistVideo, PlaylistVideo.video_id == video_id)
        await delete_where(self.session, WatchHistoryEntry, WatchHistoryEntry.video_id == video_id)
        await self.session.delete(video)
        await self.session.commit()

        logger.info(f"Deleted video {video_id}", extra={"video_id": video_id})
        await discard_media(self.media, media)
