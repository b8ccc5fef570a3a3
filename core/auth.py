"""
Identity Resolution for the VidTube API.

Session issuance is deliberately thin: a user logs in with a password and
receives a signed JWT access token. Every request may carry that token; the
`IdentityMiddleware` (see `core.middleware`) resolves it to an acting user id
and stores it on `request.state.actor_id`, leaving it None for anonymous
access. Handlers then declare the access they need through the dependencies
defined here.

Key Components:
- `JWTManager`: Creates and verifies HS256 access tokens (PyJWT).
- `PasswordManager`: bcrypt password hashing and strength checks.
- `get_optional_actor` / `require_actor`: FastAPI dependencies returning the
  acting user id (or raising `AuthenticationError` when one is required).
"""

import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

import bcrypt
import jwt
from fastapi import Request

from core.logging_config import get_logger
from core.exceptions import AuthenticationError, ValidationError

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"


class JWTManager:
    """JWT token management"""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: str = "HS256",
        expire_minutes: Optional[int] = None,
    ):
        self.secret_key = secret_key or os.getenv("JWT_SECRET_KEY") or self._generate_secret_key()
        self.algorithm = algorithm
        if expire_minutes is None:
            expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))
        self.access_token_expire = timedelta(minutes=expire_minutes)

    def _generate_secret_key(self) -> str:
        """Generate a secure secret key"""
        key = secrets.token_urlsafe(32)
        logger.warning(
            "Generated new JWT secret key. This should be set via JWT_SECRET_KEY environment variable."
        )
        return key

    def create_access_token(
        self, user_id: str, username: str, expires_delta: Optional[timedelta] = None
    ) -> str:
        """Create JWT access token"""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "username": username,
            "type": ACCESS_TOKEN_TYPE,
            "exp": now + (expires_delta or self.access_token_expire),
            "iat": now,
            "jti": secrets.token_urlsafe(16),
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.info(f"Created access token for user {username}")
        return token

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Verify and decode JWT token"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid token: {str(e)}")

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise AuthenticationError(f"Invalid token type. Expected {ACCESS_TOKEN_TYPE}")
        if not payload.get("sub"):
            raise AuthenticationError("Token has no subject")

        return payload

    @property
    def expires_in(self) -> int:
        return int(self.access_token_expire.total_seconds())


class PasswordManager:
    """Password hashing and verification"""

    SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash password using bcrypt"""
        PasswordManager.validate_password_strength(password)

        hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
        return hashed.decode("utf-8")

    @staticmethod
    def verify_password(password: str, hashed: str) -> bool:
        """Verify password against hash"""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError as e:
            logger.error(f"Password verification error: {e}")
            return False

    @staticmethod
    def validate_password_strength(password: str) -> bool:
        """Validate password meets security requirements"""
        if not password or len(password) < 8:
            raise ValidationError("Password must be at least 8 characters long", field="password")

        # bcrypt only looks at the first 72 bytes
        if len(password.encode("utf-8")) > 72:
            raise ValidationError("Password must be no more than 72 bytes long", field="password")

        has_upper = any(c.isupper() for c in password)
        has_lower = any(c.islower() for c in password)
        has_digit = any(c.isdigit() for c in password)
        has_special = any(c in PasswordManager.SPECIAL_CHARACTERS for c in password)

        if not (has_upper and has_lower and has_digit and has_special):
            raise ValidationError(
                "Password must contain at least one uppercase letter, lowercase letter, digit, and special character",
                field="password",
            )

        return True


def get_optional_actor(request: Request) -> Optional[str]:
    """Acting user id, or None for anonymous requests"""
    return getattr(request.state, "actor_id", None)


def require_actor(request: Request) -> str:
    """Acting user id; raises AuthenticationError for anonymous requests"""
    actor_id = get_optional_actor(request)
    if actor_id is None:
        raise AuthenticationError("Authentication required")
    return actor_id
