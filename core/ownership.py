"""
Ownership checks performed before any mutation.
"""

from typing import Any

from core.exceptions import ForbiddenError
from core.logging_config import get_logger
from core.validation import canonical_id

logger = get_logger(__name__)


def authorize(actor_id: Any, resource_owner_id: Any) -> bool:
    """True only when both ids are present and name the same user"""
    actor = canonical_id(actor_id)
    owner = canonical_id(resource_owner_id)
    if actor is None or owner is None:
        return False
    return actor == owner


def ensure_owner(actor_id: Any, resource_owner_id: Any, action: str = "modify this resource"):
    if not authorize(actor_id, resource_owner_id):
        logger.warning(
            f"Ownership check failed: {action}",
            extra={"actor_id": canonical_id(actor_id), "owner_id": canonical_id(resource_owner_id)},
        )
        raise ForbiddenError(f"You can't {action} as you are not the owner")
