"""Blob storage for photo attachments."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import aiofiles

from sitedpr.models import PhotoAttachment

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class BlobStore(Protocol):
    async def upload(self, data: bytes, path: str) -> str: ...


@dataclass
class PhotoUpload:
    name: str
    data: bytes
    content_type: str = "image/jpeg"


class LocalBlobStore:
    """Writes blobs under a root directory and returns their public URL."""

    def __init__(self, root: Path, public_base_url: str | None = None):
        self.root = Path(root)
        self.public_base_url = public_base_url

    async def upload(self, data: bytes, path: str) -> str:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise ValueError(f"Blob path escapes storage root: {path}")

        os.makedirs(target.parent, exist_ok=True)
        async with aiofiles.open(target, "wb") as out_file:
            await out_file.write(data)

        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        return target.as_uri()


async def upload_photos(
    store: BlobStore,
    photos: Sequence[PhotoUpload],
    prefix: str,
    progress_callback: ProgressCallback | None = None,
) -> tuple[list[PhotoAttachment], list[str]]:
    """Upload photos one at a time.

    Sequential on purpose so progress stays accurate; a failed photo is logged
    and skipped without aborting the rest.

    Returns:
        (attachments for successful uploads, error messages)
    """
    attachments: list[PhotoAttachment] = []
    errors: list[str] = []

    for idx, photo in enumerate(photos):
        try:
            url = await store.upload(photo.data, f"{prefix}/{idx:03d}_{photo.name}")
            attachments.append(PhotoAttachment(url=url, name=photo.name))
        except Exception as e:
            logger.error(f"Photo upload failed for {photo.name}: {e}")
            errors.append(f"{photo.name}: {e}")
        finally:
            if progress_callback:
                progress_callback(idx + 1, len(photos))

    return attachments, errors
