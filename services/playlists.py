"""
Playlist Service.

A playlist is an ordered set of videos curated by its owner. Membership lives
in `PlaylistVideo`; adding a video that is already present and removing one
that is absent are both no-ops.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import NotFoundError, ValidationError
from core.logging_config import log_function_call
from core.models import Playlist, PlaylistVideo, Video
from core.ownership import authorize, ensure_owner
from core.validation import InputValidator
from services.repository import apply_changes, delete_where, get_or_404, insert_if_absent

logger = logging.getLogger(__name__)


class PlaylistService:
    def __init__(self, session: AsyncSession):
        self.session = session

    @log_function_call(logger)
    async def create(self, actor_id: str, name: str, description: Optional[str] = None) -> Playlist:
        name = InputValidator.require_text(name, "name", max_length=255)
        description = (description or "").strip()

        playlist = Playlist(owner_id=actor_id, name=name, description=description)
        self.session.add(playlist)
        await self.session.commit()
        return playlist

    @log_function_call(logger)
    async def update(
        self,
        playlist_id: str,
        actor_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Playlist:
        if name is not None:
            name = InputValidator.require_text(name, "name", max_length=255)
        if description is not None:
            description = InputValidator.require_text(description, "description")
        if name is None and description is None:
            raise ValidationError("Provide a name or a description to update")

        playlist = await get_or_404(self.session, Playlist, playlist_id, "Playlist")
        ensure_owner(actor_id, playlist.owner_id, "update this playlist")

        await apply_changes(self.session, playlist, name=name, description=description)
        await self.session.commit()
        return playlist

    @log_function_call(logger)
    async def delete(self, playlist_id: str, actor_id: str) -> None:
        playlist = await get_or_404(self.session, Playlist, playlist_id, "Playlist")
        ensure_owner(actor_id, playlist.owner_id, "delete this playlist")

        await delete_where(self.session, PlaylistVideo, PlaylistVideo.playlist_id == playlist_id)
        await self.session.delete(playlist)
        await self.session.commit()
        logger.info(f"Deleted playlist {playlist_id}", extra={"playlist_id": playlist_id})

    @log_function_call(logger)
    async def add_video(self, playlist_id: str, video_id: str, actor_id: str) -> bool:
        """Append a video; returns False when it was already in the playlist"""
        playlist = await get_or_404(self.session, Playlist, playlist_id, "Playlist")
        ensure_owner(actor_id, playlist.owner_id, "add videos to this playlist")

        video = await get_or_404(self.session, Video, video_id, "Video")
        if not video.is_published and not authorize(actor_id, video.owner_id):
            raise NotFoundError("Video", video_id)

        inserted, _ = await insert_if_absent(
            self.session, PlaylistVideo(playlist_id=playlist_id, video_id=video_id)
        )
        await self.session.commit()

        logger.info(
            f"Video {video_id} {'added to' if inserted else 'already in'} playlist {playlist_id}",
            extra={"playlist_id": playlist_id, "video_id": video_id},
        )
        return inserted

    @log_function_call(logger)
    async def remove_video(self, playlist_id: str, video_id: str, actor_id: str) -> bool:
        """Remove a video; returns False when it was not in the playlist"""
        playlist = await get_or_404(self.session, Playlist, playlist_id, "Playlist")
        ensure_owner(actor_id, playlist.owner_id, "remove videos from this playlist")

        removed = await delete_where(
            self.session,
            PlaylistVideo,
            PlaylistVideo.playlist_id == playlist_id,
            PlaylistVideo.video_id == video_id,
        )
        await self.session.commit()
        return removed > 0
