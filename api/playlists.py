"""
Playlist Endpoints.

Endpoints Provided:
- `POST /playlist`: Create a playlist.
- `GET /playlist/user/{user_id}`: A user's playlists with video counts and
  view totals.
- `GET /playlist/{playlist_id}`: Playlist detail with its videos in the
  order they were added.
- `PATCH /playlist/{playlist_id}`, `DELETE /playlist/{playlist_id}`.
- `PATCH /playlist/add/{video_id}/{playlist_id}` and
  `PATCH /playlist/remove/{video_id}/{playlist_id}`: Change membership;
  only the playlist owner may do so. Both answer with the updated detail.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import require_actor
from core.database import get_session
from core.logging_config import get_logger
from core.validation import InputValidator
from services import views
from services.playlists import PlaylistService
from .dependencies import get_playlist_service
from .responses import api_response

logger = get_logger(__name__)
router = APIRouter(prefix="/playlist", tags=["Playlists"])


class PlaylistRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


@router.post("")
async def create_playlist(
    request: PlaylistRequest,
    actor_id: str = Depends(require_actor),
    playlists: PlaylistService = Depends(get_playlist_service),
):
    playlist = await playlists.create(actor_id, request.name, request.description)
    return api_response(playlist, "Playlist created successfully", status_code=201)


@router.get("/user/{user_id}")
async def get_user_playlists(user_id: str, session: AsyncSession = Depends(get_session)):
    user_id = InputValidator.validate_id(user_id, "user_id")
    result = await views.list_user_playlists(session, user_id)
    return api_response(result, "Playlists fetched successfully")


@router.get("/{playlist_id}")
async def get_playlist(playlist_id: str, session: AsyncSession = Depends(get_session)):
    playlist_id = InputValidator.validate_id(playlist_id, "playlist_id")
    playlist = await views.get_playlist_detail(session, playlist_id)
    return api_response(playlist, "Playlist fetched successfully")


@router.patch("/add/{video_id}/{playlist_id}")
async def add_video_to_playlist(
    video_id: str,
    playlist_id: str,
    actor_id: str = Depends(require_actor),
    playlists: PlaylistService = Depends(get_playlist_service),
    session: AsyncSession = Depends(get_session),
):
    video_id = InputValidator.validate_id(video_id, "video_id")
    playlist_id = InputValidator.validate_id(playlist_id, "playlist_id")

    added = await playlists.add_video(playlist_id, video_id, actor_id)
    playlist = await views.get_playlist_detail(session, playlist_id)
    message = "Video added to playlist" if added else "Video already in playlist"
    return api_response(playlist, message)


@router.patch("/remove/{video_id}/{playlist_id}")
async def remove_video_from_playlist(
    video_id: str,
    playlist_id: str,
    actor_id: str = Depends(require_actor),
    playlists: PlaylistService = Depends(get_playlist_service),
    session: AsyncSession = Depends(get_session),
):
    video_id = InputValidator.validate_id(video_id, "video_id")
    playlist_id = InputValidator.validate_id(playlist_id, "playlist_id")

    removed = await playlists.remove_video(playlist_id, video_id, actor_id)
    playlist = await views.get_playlist_detail(session, playlist_id)
    message = "Video removed from playlist" if removed else "Video was not in playlist"
    return api_response(playlist, message)


@router.patch("/{playlist_id}")
async def update_playlist(
    playlist_id: str,
    request: PlaylistRequest,
    actor_id: str = Depends(require_actor),
    playlists: PlaylistService = Depends(get_playlist_service),
):
    playlist_id = InputValidator.validate_id(playlist_id, "playlist_id")
    playlist = await playlists.update(playlist_id, actor_id, request.name, request.description)
    return api_response(playlist, "Playlist updated successfully")


@router.delete("/{playlist_id}")
async def delete_playlist(
    playlist_id: str,
    actor_id: str = Depends(require_actor),
    playlists: PlaylistService = Depends(get_playlist_service),
):
    playlist_id = InputValidator.validate_id(playlist_id, "playlist_id")
    await playlists.delete(playlist_id, actor_id)
    return api_response({}, "Playlist deleted successfully")
