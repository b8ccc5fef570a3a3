"""
Helpers for moving uploaded files through the media storage provider.
"""

import logging
import os
import shutil
import tempfile
from typing import List, Optional, Tuple

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from core.exceptions import MediaStorageError
from providers.media_provider import MediaAsset, MediaStorageProvider

logger = logging.getLogger(__name__)


def _spool_to_disk(upload: UploadFile) -> str:
    suffix = os.path.splitext(upload.filename or "")[1]
    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
        upload.file.seek(0)
        shutil.copyfileobj(upload.file, tmp)
        return tmp.name


async def store_upload(
    provider: MediaStorageProvider, upload: UploadFile, kind: str
) -> MediaAsset:
    """Write an uploaded file to a temp file, hand it to the provider and clean up"""
    local_path = await run_in_threadpool(_spool_to_disk, upload)
    try:
        return await provider.upload(local_path, kind=kind)
    finally:
        try:
            os.remove(local_path)
        except OSError as e:
            logger.warning(f"Could not remove temp file {local_path}: {e}")


async def discard_media(
    provider: MediaStorageProvider, assets: List[Tuple[Optional[str], str]]
) -> None:
    """
    Delete stored files that are no longer referenced. Failures are logged,
    not raised: the records pointing at them are already gone.
    """
    for public_id, kind in assets:
        if not public_id:
            continue
        try:
            await provider.delete(public_id, kind=kind)
        except MediaStorageError as e:
            logger.error(
                f"Failed to delete orphaned media {public_id}: {e.message}",
                extra={"public_id": public_id, "kind": kind},
            )
