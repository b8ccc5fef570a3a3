"""
Input Validation Utilities.

Validation for the values request handlers accept: entity identifiers,
required text fields, pagination and sort parameters. Every failure raises
`core.exceptions.ValidationError`, which the API reports as HTTP 400.

Key Components:
- `canonical_id`: Normalises an identifier (UUID, string, or an object with
  an `id` attribute) to its canonical string form, or None. Never raises.
- `InputValidator`: Static validators used by the handlers.
"""

import re
import uuid
from typing import Any, Optional, Tuple, Iterable

from core.logging_config import get_logger
from core.exceptions import ValidationError

logger = get_logger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def canonical_id(value: Any) -> Optional[str]:
    """Canonical string form of an identifier, or None if absent/malformed"""
    if value is None:
        return None
    if not isinstance(value, (str, uuid.UUID)):
        value = getattr(value, "id", None)
        if value is None:
            return None
    if isinstance(value, uuid.UUID):
        return str(value)
    try:
        return str(uuid.UUID(value.strip()))
    except (ValueError, AttributeError):
        return None


class InputValidator:
    """Input validation shared by the request handlers"""

    USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]{3,30}$")
    EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

    @staticmethod
    def validate_id(value: Any, field: str = "id") -> str:
        """Validate an entity identifier and return its canonical form"""
        normalized = canonical_id(value)
        if normalized is None:
            raise ValidationError(f"Invalid {field}", field=field, value=value)
        return normalized

    @staticmethod
    def require_text(value: Optional[str], field: str, max_length: int = 5000) -> str:
        """Validate a required, non-blank text field"""
        if value is None or not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field} is required", field=field)

        value = value.strip()
        if len(value) > max_length:
            raise ValidationError(
                f"{field} must be no more than {max_length} characters",
                field=field,
            )
        return value

    @staticmethod
    def validate_username(username: Optional[str]) -> str:
        username = InputValidator.require_text(username, "username", max_length=30)
        if not InputValidator.USERNAME_PATTERN.match(username):
            raise ValidationError(
                "Username must be 3-30 characters and contain only letters, "
                "numbers, dots, hyphens, and underscores",
                field="username",
                value=username,
            )
        return username.lower()

    @staticmethod
    def validate_email(email: Optional[str]) -> str:
        email = InputValidator.require_text(email, "email", max_length=254)
        if not InputValidator.EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format", field="email", value=email)
        return email.lower()

    @staticmethod
    def validate_pagination(page: Any = None, limit: Any = None) -> Tuple[int, int]:
        """Validate 1-based page number and page size"""
        try:
            page = DEFAULT_PAGE if page is None else int(page)
            limit = DEFAULT_LIMIT if limit is None else int(limit)
        except (TypeError, ValueError):
            raise ValidationError("page and limit must be integers")

        if page < 1:
            raise ValidationError("page must be at least 1", field="page", value=page)
        if limit < 1 or limit > MAX_LIMIT:
            raise ValidationError(
                f"limit must be between 1 and {MAX_LIMIT}", field="limit", value=limit
            )
        return page, limit

    @staticmethod
    def validate_sort(
        sort_by: Optional[str],
        sort_type: Optional[str],
        allowed: Iterable[str],
        default: str = "created_at",
    ) -> Tuple[str, bool]:
        """Validate a sort field and direction; returns (field, descending)"""
        allowed = tuple(allowed)
        sort_by = sort_by or default
        if sort_by not in allowed:
            raise ValidationError(
                f"sort_by must be one of: {', '.join(allowed)}",
                field="sort_by",
                value=sort_by,
            )

        sort_type = (sort_type or "desc").lower()
        if sort_type not in ("asc", "desc"):
            raise ValidationError(
                "sort_type must be 'asc' or 'desc'", field="sort_type", value=sort_type
            )
        return sort_by, sort_type == "desc"
