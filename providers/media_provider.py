"""
Media Storage Provider Classes

Binary media (video files, thumbnails, avatars) never lives in the database.
Handlers hand a local file to a `MediaStorageProvider` and store only the URL
and public id it returns.

- `LocalMediaStorageProvider` keeps files under a local directory and serves
  them from a base URL. Used for development and tests.
- `HttpMediaStorageProvider` forwards files to a remote object-storage/CDN
  upload API.
"""

import os
import shutil
import uuid
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import aiohttp
from starlette.concurrency import run_in_threadpool

from core.exceptions import MediaStorageError

logger = logging.getLogger(__name__)

MEDIA_KINDS = ("video", "image")


@dataclass
class MediaAsset:
    """A stored media file"""

    url: str
    public_id: str
    duration: Optional[float] = None


class MediaStorageProvider(ABC):
    """Abstract base class for media storage backends"""

    @abstractmethod
    async def upload(self, local_path: str, kind: str = "image") -> MediaAsset:
        """Store the file at local_path and return where it can be fetched"""
        pass

    @abstractmethod
    async def delete(self, public_id: str, kind: str = "image") -> bool:
        """Delete a stored file. Returns False when nothing was deleted."""
        pass

    @property
    @abstractmethod
    def source_name(self) -> str:
        pass

    async def close(self):
        pass


def _check_kind(kind: str):
    if kind not in MEDIA_KINDS:
        raise ValueError(f"Unknown media kind '{kind}', expected one of {MEDIA_KINDS}")


class LocalMediaStorageProvider(MediaStorageProvider):
    """Store media under a local directory"""

    def __init__(self, storage_dir: Optional[str] = None, base_url: Optional[str] = None):
        self.storage_dir = storage_dir or os.getenv("MEDIA_STORAGE_DIR", "./media")
        self.base_url = (base_url or os.getenv("MEDIA_BASE_URL", "/media")).rstrip("/")

    @property
    def source_name(self) -> str:
        return "local"

    def _path_for(self, public_id: str) -> str:
        path = os.path.abspath(os.path.join(self.storage_dir, public_id))
        if not path.startswith(os.path.abspath(self.storage_dir) + os.sep):
            raise MediaStorageError("resolve", f"invalid public id {public_id!r}")
        return path

    async def upload(self, local_path: str, kind: str = "image") -> MediaAsset:
        _check_kind(kind)
        if not local_path or not os.path.isfile(local_path):
            raise MediaStorageError("upload", f"file not found: {local_path}")

        extension = os.path.splitext(local_path)[1].lower()
        public_id = f"{kind}/{uuid.uuid4().hex}{extension}"
        destination = self._path_for(public_id)

        try:
            os.makedirs(os.path.dirname(destination), exist_ok=True)
            await run_in_threadpool(shutil.copyfile, local_path, destination)
        except OSError as e:
            raise MediaStorageError("upload", str(e))

        logger.info(f"Stored {kind} {public_id}")
        return MediaAsset(url=f"{self.base_url}/{public_id}", public_id=public_id)

    async def delete(self, public_id: str, kind: str = "image") -> bool:
        _check_kind(kind)
        path = self._path_for(public_id)
        if not os.path.exists(path):
            logger.warning(f"Media {public_id} already absent")
            return False

        try:
            await run_in_threadpool(os.remove, path)
        except OSError as e:
            raise MediaStorageError("delete", str(e))

        logger.info(f"Deleted {kind} {public_id}")
        return True


class HttpMediaStorageProvider(MediaStorageProvider):
    """
    Store media through a remote upload API.

    POST {base_url}/upload/{kind} (multipart field "file") answers with
    {"url", "public_id", "duration"?}; DELETE {base_url}/{kind}/{public_id}
    removes a file.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: float = 120,
    ):
        self.base_url = (base_url or os.getenv("MEDIA_STORAGE_URL", "")).rstrip("/")
        if not self.base_url:
            raise ValueError("MEDIA_STORAGE_URL must be set for the http media provider")
        self.api_key = api_key or os.getenv("MEDIA_STORAGE_API_KEY")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    @property
    def source_name(self) -> str:
        return "http"

    def _headers(self):
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    async def upload(self, local_path: str, kind: str = "image") -> MediaAsset:
        _check_kind(kind)
        if not local_path or not os.path.isfile(local_path):
            raise MediaStorageError("upload", f"file not found: {local_path}")

        try:
            with open(local_path, "rb") as fh:
                form = aiohttp.FormData()
                form.add_field("file", fh, filename=os.path.basename(local_path))

                async with aiohttp.ClientSession(headers=self._headers()) as session:
                    async with session.post(
                        f"{self.base_url}/upload/{kind}", data=form, timeout=self.timeout
                    ) as response:
                        if response.status not in (200, 201):
                            raise MediaStorageError(
                                "upload", f"storage service answered {response.status}"
                            )
                        payload = await response.json()
        except aiohttp.ClientError as e:
            raise MediaStorageError("upload", str(e))

        try:
            asset = MediaAsset(
                url=payload["url"],
                public_id=payload["public_id"],
                duration=payload.get("duration"),
            )
        except (KeyError, TypeError):
            raise MediaStorageError("upload", "malformed response from storage service")

        logger.info(f"Uploaded {kind} {asset.public_id}")
        return asset

    async def delete(self, public_id: str, kind: str = "image") -> bool:
        _check_kind(kind)
        try:
            async with aiohttp.ClientSession(headers=self._headers()) as session:
                async with session.delete(
                    f"{self.base_url}/{kind}/{public_id}", timeout=self.timeout
                ) as response:
                    if response.status == 404:
                        logger.warning(f"Media {public_id} already absent")
                        return False
                    if response.status not in (200, 202, 204):
                        raise MediaStorageError(
                            "delete", f"storage service answered {response.status}"
                        )
        except aiohttp.ClientError as e:
            raise MediaStorageError("delete", str(e))

        logger.info(f"Deleted {kind} {public_id}")
        return True


def create_media_provider(backend: Optional[str] = None) -> MediaStorageProvider:
    """Build the provider selected by MEDIA_STORAGE_BACKEND"""
    backend = (backend or os.getenv("MEDIA_STORAGE_BACKEND", "local")).lower()
    if backend == "local":
        return LocalMediaStorageProvider()
    if backend == "http":
        return HttpMediaStorageProvider()
    raise ValueError(f"Unknown media storage backend '{backend}'")
