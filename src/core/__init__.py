"""
Raasta Sathi - Core Utilities
Central configuration, constants and coordinate helpers.
"""

from src.core.config import settings
from src.core.constants import (
    REPORT_TYPES,
    DESCRIPTION_MAX_LENGTH,
    COMMENT_MAX_LENGTH,
)
from src.core.geo_utils import (
    GeoPoint,
    sanitize_coordinates,
)

__all__ = [
    "settings",
    "REPORT_TYPES",
    "DESCRIPTION_MAX_LENGTH",
    "COMMENT_MAX_LENGTH",
    "GeoPoint",
    "sanitize_coordinates",
]
