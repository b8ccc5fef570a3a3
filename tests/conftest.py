import pytest
import os
import sys
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

# Add the parent directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from main import create_app
from core.auth import JWTManager
from core.database import Database
from core.models import User, Video
from providers.media_provider import LocalMediaStorageProvider

MEMORY_DATABASE_URL = "sqlite+aiosqlite://"
TEST_PASSWORD = "Secret123!"


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("JWT_SECRET_KEY", "test-secret-key")


@pytest.fixture
async def database() -> AsyncGenerator[Database, None]:
    """Isolated in-memory database with all tables created."""
    db = Database(MEMORY_DATABASE_URL)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def session(database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def media_provider(tmp_path) -> LocalMediaStorageProvider:
    return LocalMediaStorageProvider(storage_dir=str(tmp_path / "media"), base_url="/media")


@pytest.fixture
def make_user(session):
    """Factory creating users directly in the store."""

    async def _make_user(username: str, **overrides) -> User:
        user = User(
            username=username,
            full_name=overrides.pop("full_name", username.title()),
            email=overrides.pop("email", f"{username}@example.com"),
            password_hash="not-a-real-hash",
            **overrides,
        )
        session.add(user)
        await session.commit()
        return user

    return _make_user


@pytest.fixture
def make_video(session):
    """Factory creating videos directly in the store."""
    base_time = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    counter = {"n": 0}

    async def _make_video(owner_id: str, **overrides) -> Video:
        counter["n"] += 1
        video = Video(
            owner_id=owner_id,
            title=overrides.pop("title", f"Video {counter['n']}"),
            description=overrides.pop("description", "A test video"),
            video_url=overrides.pop("video_url", f"/media/video/{counter['n']}.mp4"),
            thumbnail_url=overrides.pop("thumbnail_url", f"/media/image/{counter['n']}.png"),
            created_at=overrides.pop("created_at", base_time + timedelta(minutes=counter["n"])),
            **overrides,
        )
        session.add(video)
        await session.commit()
        return video

    return _make_video


@pytest.fixture
def app(media_provider):
    """Fresh application bound to its own in-memory database."""
    return create_app(
        database_url=MEMORY_DATABASE_URL,
        media_provider=media_provider,
        jwt_manager=JWTManager(secret_key="test-secret-key"),
    )


@pytest.fixture
def test_client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app (runs the lifespan)."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def register_user(test_client):
    """Register and log in a user through the API; returns (user_id, headers)."""

    def _register(username: str):
        response = test_client.post(
            "/api/v1/users/register",
            json={
                "username": username,
                "email": f"{username}@example.com",
                "password": TEST_PASSWORD,
                "full_name": username.title(),
            },
        )
        assert response.status_code == 201, response.text
        user_id = response.json()["data"]["id"]

        response = test_client.post(
            "/api/v1/users/login", json={"username": username, "password": TEST_PASSWORD}
        )
        assert response.status_code == 200, response.text
        token = response.json()["data"]["access_token"]

        # Requests authenticate with the header only
        test_client.cookies.clear()
        return user_id, {"Authorization": f"Bearer {token}"}

    return _register


@pytest.fixture
def upload_video(test_client):
    """Publish a video through the API; returns the created video payload."""

    def _upload(headers, title: str = "My video", description: str = "About it"):
        response = test_client.post(
            "/api/v1/videos",
            headers=headers,
            data={"title": title, "description": description},
            files={
                "video_file": ("clip.mp4", b"fake video bytes", "video/mp4"),
                "thumbnail": ("thumb.png", b"fake image bytes", "image/png"),
            },
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _upload
