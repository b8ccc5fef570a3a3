from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import get_optional_actor, require_actor
from core.database import get_session
from core.logging_config import get_logger
from core.validation import InputValidator
from services import views
from services.comments import CommentService
from .dependencies import get_comment_service
from .responses import api_response

logger = get_logger(__name__)
router = APIRouter(prefix="/comments", tags=["Comments"])


class CommentRequest(BaseModel):
    content: Optional[str] = None


@router.get("/{video_id}")
async def get_video_comments(
    video_id: str,
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    actor_id: Optional[str] = Depends(get_optional_actor),
    session: AsyncSession = Depends(get_session),
):
    video_id = InputValidator.validate_id(video_id, "video_id")
    page, limit = InputValidator.validate_pagination(page, limit)

    comments = await views.list_video_comments(session, video_id, page, limit, actor_id)
    return api_response(comments, "Comments fetched successfully")


@router.post("/{video_id}")
async def add_comment(
    video_id: str,
    request: CommentRequest,
    actor_id: str = Depends(require_actor),
    comments: CommentService = Depends(get_comment_service),
):
    video_id = InputValidator.validate_id(video_id, "video_id")
    comment = await comments.add(video_id, actor_id, request.content)
    return api_response(comment, "Comment added successfully", status_code=201)


@router.patch("/c/{comment_id}")
async def update_comment(
    comment_id: str,
    request: CommentRequest,
    actor_id: str = Depends(require_actor),
    comments: CommentService = Depends(get_comment_service),
):
    comment_id = InputValidator.validate_id(comment_id, "comment_id")
    comment = await comments.update(comment_id, actor_id, request.content)
    return api_response(comment, "Comment updated successfully")


@router.delete("/c/{comment_id}")
async def delete_comment(
    comment_id: str,
    actor_id: str = Depends(require_actor),
    comments: CommentService = Depends(get_comment_service),
):
    comment_id = InputValidator.validate_id(comment_id, "comment_id")
    await comments.delete(comment_id, actor_id)
    return api_response({}, "Comment deleted successfully")
