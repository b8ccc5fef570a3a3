"""
Video Endpoints.

Endpoints Provided:
- `GET /videos`: Published videos, paginated, with free-text search, owner
  filter and sorting.
- `POST /videos`: Publish a video (multipart: video_file, thumbnail, title,
  description).
- `GET /videos/{video_id}`: Video detail. Counts a view and records the
  video in the actor's watch history.
- `PATCH /videos/{video_id}`: Update title, description and thumbnail.
- `DELETE /videos/{video_id}`: Delete a video and everything referencing it.
- `PATCH /videos/toggle/publish/{video_id}`: Flip the published flag.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import get_optional_actor, require_actor
from core.database import get_session
from core.logging_config import get_logger
from core.validation import InputValidator
from services import views
from services.videos import VideoService
from .dependencies import get_video_service
from .responses import api_response

logger = get_logger(__name__)
router = APIRouter(prefix="/videos", tags=["Videos"])


@router.get("")
async def list_videos(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    query: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_type: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    actor_id: Optional[str] = Depends(get_optional_actor),
    session: AsyncSession = Depends(get_session),
):
    page, limit = InputValidator.validate_pagination(page, limit)
    owner_id = InputValidator.validate_id(user_id, "user_id") if user_id else None

    result = await views.list_videos(
        session,
        query=query,
        owner_id=owner_id,
        sort_by=sort_by,
        sort_type=sort_type,
        page=page,
        limit=limit,
        actor_id=actor_id,
    )
    return api_response(result, "Videos fetched successfully")


@router.post("")
async def publish_video(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    video_file: Optional[UploadFile] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    actor_id: str = Depends(require_actor),
    videos: VideoService = Depends(get_video_service),
):
    video = await videos.publish(actor_id, title, description, video_file, thumbnail)
    return api_response(video, "Video published successfully", status_code=201)


@router.get("/{video_id}")
async def get_video(
    video_id: str,
    actor_id: Optional[str] = Depends(get_optional_actor),
    session: AsyncSession = Depends(get_session),
):
    video_id = InputValidator.validate_id(video_id, "video_id")
    video = await views.get_video_detail(session, video_id, actor_id)
    return api_response(video, "Video fetched successfully")


@router.patch("/{video_id}")
async def update_video(
    video_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    actor_id: str = Depends(require_actor),
    videos: VideoService = Depends(get_video_service),
):
    video_id = InputValidator.validate_id(video_id, "video_id")
    video = await videos.update(video_id, actor_id, title, description, thumbnail)
    return api_response(video, "Video updated successfully")


@router.delete("/{video_id}")
async def delete_video(
    video_id: str,
    actor_id: str = Depends(require_actor),
    videos: VideoService = Depends(get_video_service),
):
    video_id = InputValidator.validate_id(video_id, "video_id")
    await videos.delete(video_id, actor_id)
    return api_response({}, "Video deleted successfully")


@router.patch("/toggle/publish/{video_id}")
async def toggle_publish_status(
    video_id: str,
    actor_id: str = Depends(require_actor),
    videos: VideoService = Depends(get_video_service),
):
    video_id = InputValidator.validate_id(video_id, "video_id")
    video = await videos.toggle_publish(video_id, actor_id)
    return api_response(
        {"id": video.id, "is_published": video.is_published},
        "Video publish status toggled successfully",
    )
