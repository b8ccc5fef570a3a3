"""
User Endpoints.

Registration and password login issue the bearer token every other router
relies on; `/me` and `/history` return the acting user's profile and watch
history.

Endpoints Provided:
- `POST /users/register`: Create an account.
- `POST /users/login`: Exchange credentials for an access token. The token
  is also set as the `access_token` cookie.
- `GET /users/me`: Profile of the acting user.
- `GET /users/history`: Videos the acting user watched, in watch order.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import require_actor
from core.database import get_session
from core.logging_config import get_logger
from services import views
from services.users import UserService
from .dependencies import get_user_service
from .responses import api_response

logger = get_logger(__name__)
router = APIRouter(prefix="/users", tags=["Users"])


# Request Models
class RegisterRequest(BaseModel):
    username: str
    email: EmailStr
    password: str
    full_name: str
    avatar_url: Optional[str] = None
    cover_image_url: Optional[str] = None


class LoginRequest(BaseModel):
    username: str
    password: str


@router.post("/register")
async def register_user(
    request: RegisterRequest, users: UserService = Depends(get_user_service)
):
    profile = await users.register(
        username=request.username,
        email=request.email,
        password=request.password,
        full_name=request.full_name,
        avatar_url=request.avatar_url,
        cover_image_url=request.cover_image_url,
    )
    return api_response(profile, "User registered successfully", status_code=201)


@router.post("/login")
async def login_user(request: LoginRequest, users: UserService = Depends(get_user_service)):
    """Authenticate with username (or email) and password"""
    session = await users.login(request.username, request.password)

    response = api_response(session, "User logged in successfully")
    response.set_cookie(
        "access_token",
        session["access_token"],
        max_age=session["expires_in"],
        httponly=True,
        samesite="lax",
    )
    return response


@router.get("/me")
async def get_current_user(
    actor_id: str = Depends(require_actor), users: UserService = Depends(get_user_service)
):
    profile = await users.get_profile(actor_id)
    return api_response(profile, "Current user fetched successfully")


@router.get("/history")
async def get_watch_history(
    actor_id: str = Depends(require_actor), session: AsyncSession = Depends(get_session)
):
    history = await views.get_watch_history(session, actor_id)
    return api_response(history, "Watch history fetched successfully")
