"""
Photo storage for report attachments
Reports only keep the (url, storage_id) handle returned by a store.
"""

import logging
import mimetypes
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.core.config import settings
from src.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class StoredPhoto:
    """Handle for a stored photo."""
    url: str
    storage_id: str
    stored_at: datetime


def validate_photo(
    content_type: Optional[str],
    size: int,
    max_bytes: Optional[int] = None
) -> None:
    """
    Check an upload against the photo contract: image MIME type, bounded size.

    Raises:
        ValidationError: if the photo is not acceptable
    """
    max_bytes = max_bytes or settings.max_photo_bytes
    if not content_type or not content_type.startswith("image/"):
        raise ValidationError("Only image files are allowed", field="photo")
    if size > max_bytes:
        raise ValidationError(
            f"File size too large. Maximum size is {max_bytes // (1024 * 1024)}MB.",
            field="photo",
        )


class LocalPhotoStore:
    """
    Stores photos on the local filesystem.

    Files are written under ``base_dir`` and served from ``base_url``.
    """

    def __init__(
        self,
        base_dir: Optional[str] = None,
        base_url: Optional[str] = None
    ):
        self.base_dir = Path(base_dir or settings.photo_storage_dir)
        self.base_url = (base_url or settings.photo_base_url).rstrip("/")

    def store(self, data: bytes, metadata: Dict[str, Any]) -> StoredPhoto:
        """
        Write photo bytes to disk.

        Args:
            data: Raw image bytes
            metadata: Upload metadata (content_type, filename, report owner)

        Returns:
            StoredPhoto handle
        """
        extension = mimetypes.guess_extension(metadata.get("content_type") or "") or ".bin"
        storage_id = f"{uuid.uuid4().hex}{extension}"

        self.base_dir.mkdir(parents=True, exist_ok=True)
        path = self.base_dir / storage_id
        path.write_bytes(data)
        logger.info(f"Stored photo {storage_id} ({len(data)} bytes)")

        return StoredPhoto(
            url=f"{self.base_url}/{storage_id}",
            storage_id=storage_id,
            stored_at=datetime.now(timezone.utc),
        )


class MockPhotoStore:
    """
    Mock photo store for testing.

    Keeps photos in memory instead of writing them anywhere.
    """

    def __init__(self):
        self.stored: List[Dict[str, Any]] = []
        logger.info("Mock photo store initialized")

    def store(self, data: bytes, metadata: Dict[str, Any]) -> StoredPhoto:
        storage_id = f"MOCK_{len(self.stored)}"
        self.stored.append({"storage_id": storage_id, "data": data, "metadata": metadata})
        logger.info(f"[MOCK PHOTO] Stored {storage_id} ({len(data)} bytes)")
        return StoredPhoto(
            url=f"https://photos.example.test/{storage_id}",
            storage_id=storage_id,
            stored_at=datetime.now(timezone.utc),
        )
