import logging

from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import log_function_call
from core.models import Comment, Like, Video
from core.ownership import ensure_owner
from core.validation import InputValidator
from services.repository import apply_changes, delete_where, get_or_404

logger = logging.getLogger(__name__)


class CommentService:
    """Comments on videos"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @log_function_call(logger)
    async def add(self, video_id: str, actor_id: str, content: str) -> Comment:
        content = InputValidator.require_text(content, "content")
        await get_or_404(self.session, Video, video_id, "Video")

        comment = Comment(content=content, video_id=video_id, owner_id=actor_id)
        self.session.add(comment)
        await self.session.commit()
        return comment

    @log_function_call(logger)
    async def update(self, comment_id: str, actor_id: str, content: str) -> Comment:
        content = InputValidator.require_text(content, "content")
        comment = await get_or_404(self.session, Comment, comment_id, "Comment")
        ensure_owner(actor_id, comment.owner_id, "edit this comment")

        await apply_changes(self.session, comment, content=content)
        await self.session.commit()
        return comment

    @log_function_call(logger)
    async def delete(self, comment_id: str, actor_id: str) -> None:
        comment = await get_or_404(self.session, Comment, comment_id, "Comment")
        ensure_owner(actor_id, comment.owner_id, "delete this comment")

        await delete_where(self.session, Like, Like.comment_id == comment_id)
        await self.session.delete(comment)
        await self.session.commit()
        logger.info(f"Deleted comment {comment_id}", extra={"comment_id": comment_id})
