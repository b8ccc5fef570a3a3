"""
Toggle Engine.

"If the relation exists, delete it; otherwise create it", driven by the
relation's unique key. Used for likes on videos, comments and tweets and for
channel subscriptions.

The toggle never reads before it writes. It deletes first; if nothing was
deleted it inserts with ON CONFLICT DO NOTHING; if that insert lost a race to
a concurrent toggle by the same actor, the relation now exists and this call
behaves as the second of two sequential toggles and removes it. Two
concurrent toggles can therefore never both report "added".
"""

import logging
from dataclasses import dataclass
from typing import Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from core.logging_config import log_function_call
from core.models import Like, Subscription
from services.repository import delete_where, insert_if_absent

logger = logging.getLogger(__name__)

ADDED = "added"
REMOVED = "removed"


@dataclass(frozen=True)
class RelationKind:
    """A toggleable relation: its table, target column and actor column"""

    name: str
    model: Type[SQLModel]
    target_column: str
    actor_column: str

    def key(self, target_id: str, actor_id: str):
        return (
            getattr(self.model, self.target_column) == target_id,
            getattr(self.model, self.actor_column) == actor_id,
        )

    def build(self, target_id: str, actor_id: str) -> SQLModel:
        return self.model(**{self.target_column: target_id, self.actor_column: actor_id})


VIDEO_LIKE = RelationKind("video_like", Like, "video_id", "liked_by")
COMMENT_LIKE = RelationKind("comment_like", Like, "comment_id", "liked_by")
TWEET_LIKE = RelationKind("tweet_like", Like, "tweet_id", "liked_by")
SUBSCRIPTION = RelationKind("subscription", Subscription, "channel_id", "subscriber_id")


@dataclass
class ToggleResult:
    state: str
    record: Optional[SQLModel] = None

    @property
    def added(self) -> bool:
        return self.state == ADDED


@log_function_call(logger)
async def toggle_relation(
    session: AsyncSession,
    kind: RelationKind,
    target_id: str,
    actor_id: str,
    commit: bool = True,
) -> ToggleResult:
    """Flip the (kind, target_id, actor_id) relation and report the new state"""
    key = kind.key(target_id, actor_id)

    if await delete_where(session, kind.model, *key):
        result = ToggleResult(REMOVED)
    else:
        inserted, record = await insert_if_absent(session, kind.build(target_id, actor_id))
        if inserted:
            result = ToggleResult(ADDED, record)
        else:
            # A concurrent toggle created it between our delete and insert
            await delete_where(session, kind.model, *key)
            result = ToggleResult(REMOVED)

    if commit:
        await session.commit()

    logger.info(
        f"{kind.name} {result.state}",
        extra={"relation": kind.name, "target_id": target_id, "actor_id": actor_id},
    )
    return result
