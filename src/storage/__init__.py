"""
Raasta Sathi - Photo Storage
Storage backends for report photos.
"""

from src.storage.photo_store import (
    LocalPhotoStore,
    MockPhotoStore,
    StoredPhoto,
    validate_photo,
)

__all__ = [
    "LocalPhotoStore",
    "MockPhotoStore",
    "StoredPhoto",
    "validate_photo",
]
