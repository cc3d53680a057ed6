"""
Raasta Sathi - Constants and Reference Data
Static values used throughout the application.
"""

from typing import Dict, List, Tuple

# =============================================================================
# REPORT CLASSIFICATION
# =============================================================================

REPORT_TYPES: List[str] = [
    "accident",
    "police",
    "pothole",
    "construction",
    "congestion",
    "closure",
    "weather",
    "vip",
]

# =============================================================================
# FIELD LIMITS
# =============================================================================

DESCRIPTION_MAX_LENGTH = 500
COMMENT_MAX_LENGTH = 200
MAX_PHOTOS_PER_REPORT = 1

PRIORITY_MIN = 1
PRIORITY_MAX = 5

DEFAULT_COUNTRY = "India"

# =============================================================================
# MODERATION
# =============================================================================

# Allowed moderation transitions; states absent as keys are terminal.
STATUS_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "pending": ("verified", "rejected"),
    "verified": ("resolved",),
}

# =============================================================================
# GEOSPATIAL
# =============================================================================

# GeoJSON coordinate order is (longitude, latitude)
GEOJSON_POINT_TYPE = "Point"
