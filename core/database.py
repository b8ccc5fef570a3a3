"""
Database Management and Configuration.

Sets up the asynchronous persistence layer for the VidTube API using SQLAlchemy's
asyncio extension and SQLModel tables.

Key Components:
- `Database`: Owns the async engine and session factory for one application
  instance. It is created by the application's lifespan and disposed on
  shutdown, so tests can run any number of isolated instances side by side.
- `get_session`: FastAPI dependency yielding one `AsyncSession` per request.
- `get_database_info`: Diagnostic information for the health endpoint.

Configuration:
- `DATABASE_URL` selects the backend. `sqlite+aiosqlite://` URLs are used in
  development and tests (an in-memory URL shares one connection through
  `StaticPool`); `postgresql+asyncpg://` URLs get a pooled engine.
"""

import os
import logging
from typing import AsyncIterator, Optional, Dict, Any

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import AsyncAdaptedQueuePool, StaticPool
from sqlmodel import SQLModel

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./vidtube.db"


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (
        ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:")
    )


class Database:
    """Async engine and session factory for one application instance"""

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.url = url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

        if _is_memory_sqlite(self.url):
            self.engine = create_async_engine(
                self.url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=echo,
            )
        elif self.url.startswith("sqlite"):
            self.engine = create_async_engine(
                self.url,
                connect_args={"check_same_thread": False},
                poolclass=AsyncAdaptedQueuePool,
                echo=echo,
            )
        else:
            self.engine = create_async_engine(
                self.url,
                poolclass=AsyncAdaptedQueuePool,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,
                echo=echo,
            )

        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    async def create_all(self):
        """Create all tables registered on the SQLModel metadata"""
        # Table classes register themselves on import
        import core.models  # noqa: F401

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("VidTube database tables created successfully")
        except Exception as e:
            logger.error(f"Failed to create VidTube database tables: {e}")
            raise

    async def dispose(self):
        await self.engine.dispose()
        logger.info("Database engine disposed")

    async def info(self) -> Dict[str, Any]:
        """Basic connectivity information for health checks"""
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                result.scalar()
            connection_healthy = True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            connection_healthy = False

        return {
            # Hide credentials
            "database_url": self.url.split("@")[1] if "@" in self.url else "masked",
            "connection_healthy": connection_healthy,
            "database_type": self.dialect,
        }


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """
    Get an async database session for dependency injection.
    """
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        yield session


async def get_database_info(request: Request) -> Dict[str, Any]:
    return await request.app.state.database.info()
