"""
User registration and password login.

Users are created with a bcrypt password hash; logging in issues a signed
access token through `JWTManager`. Both usernames and emails are stored
lower-cased and must be unique.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import JWTManager, PasswordManager
from core.exceptions import AuthenticationError, ValidationError
from core.logging_config import log_function_call
from core.models import Subscription, User
from core.validation import InputValidator
from services.repository import get_or_404

logger = logging.getLogger(__name__)


def user_profile(user: User) -> Dict[str, Any]:
    """Public representation of a user; never includes the password hash"""
    return {
        "id": user.id,
        "username": user.username,
        "full_name": user.full_name,
        "email": user.email,
        "avatar_url": user.avatar_url,
        "cover_image_url": user.cover_image_url,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


class UserService:
    """Account creation, authentication and profile lookup"""

    def __init__(self, session: AsyncSession, jwt_manager: JWTManager):
        self.session = session
        self.jwt_manager = jwt_manager

    @log_function_call(logger)
    async def register(
        self,
        username: str,
        email: str,
        password: str,
        full_name: str,
        avatar_url: Optional[str] = None,
        cover_image_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        username = InputValidator.validate_username(username)
        email = InputValidator.validate_email(email)
        full_name = InputValidator.require_text(full_name, "full_name", max_length=255)
        password_hash = PasswordManager.hash_password(password)

        existing = await self.session.execute(
            select(User.id).where(or_(User.username == username, User.email == email))
        )
        if existing.first() is not None:
            raise ValidationError("User with this username or email already exists")

        user = User(
            username=username,
            email=email,
            full_name=full_name,
            password_hash=password_hash,
            avatar_url=avatar_url,
            cover_image_url=cover_image_url,
        )
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError:
            # Registered concurrently under the same username or email
            await self.session.rollback()
            raise ValidationError("User with this username or email already exists")

        logger.info(f"Registered user {username}", extra={"user_id": user.id})
        return user_profile(user)

    @log_function_call(logger)
    async def login(self, username_or_email: str, password: str) -> Dict[str, Any]:
        """Verify credentials and issue an access token"""
        identifier = InputValidator.require_text(username_or_email, "username").lower()
        result = await self.session.execute(
            select(User).where(or_(User.username == identifier, User.email == identifier))
        )
        user = result.scalars().first()

        if user is None or not PasswordManager.verify_password(password or "", user.password_hash):
            logger.warning("Failed login attempt", extra={"identifier": identifier})
            raise AuthenticationError("Invalid username or password")

        access_token = self.jwt_manager.create_access_token(user.id, user.username)
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": self.jwt_manager.expires_in,
            "user": user_profile(user),
        }

    async def get_profile(self, user_id: str) -> Dict[str, Any]:
        user = await get_or_404(self.session, User, user_id, "User")
        profile = user_profile(user)

        subscribers = await self.session.execute(
            select(func.count()).select_from(Subscription).where(Subscription.channel_id == user_id)
        )
        profile["subscribers_count"] = subscribers.scalar_one()
        return profile
