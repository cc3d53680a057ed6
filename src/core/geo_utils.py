"""
Raasta Sathi - Geospatial Utilities
Coordinate sanitation for report locations.
"""

import json
import logging
import math
import numbers
from typing import Any, Dict, Optional
from dataclasses import dataclass

from src.core.constants import GEOJSON_POINT_TYPE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeoPoint:
    """Validated geographic point. Never the (0, 0) origin sentinel."""
    longitude: float
    latitude: float

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": GEOJSON_POINT_TYPE,
            "coordinates": [self.longitude, self.latitude],
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def sanitize_coordinates(raw: Any) -> Optional[GeoPoint]:
    """
    Validate and normalize a coordinate payload.

    Accepts a GeoJSON-like mapping ``{"coordinates": [lng, lat]}``, the same
    mapping serialized as a JSON string, a bare ``[lng, lat]`` sequence or an
    existing GeoPoint. The point is accepted only when it has exactly two
    finite numeric components that are not both zero.

    Never raises. Every rejected input is logged and yields None, so callers
    omit the field instead of storing a partial or zeroed point.

    Args:
        raw: Candidate coordinate payload

    Returns:
        GeoPoint, or None when the payload is absent or invalid
    """
    if raw is None:
        return None

    if isinstance(raw, GeoPoint):
        raw = [raw.longitude, raw.latitude]

    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Dropping coordinates: payload is not valid JSON")
            return None

    if isinstance(raw, dict):
        if "coordinates" not in raw:
            # Address-only location, nothing to validate
            return None
        coords = raw["coordinates"]
    else:
        coords = raw

    if not isinstance(coords, (list, tuple)) or len(coords) != 2:
        logger.warning(f"Dropping coordinates: expected [lng, lat], got {coords!r}")
        return None

    lng, lat = coords
    if not (_is_number(lng) and _is_number(lat)):
        logger.warning(f"Dropping coordinates: non-numeric values {coords!r}")
        return None

    try:
        lng, lat = float(lng), float(lat)
    except OverflowError:
        lng = lat = math.inf
    if not (math.isfinite(lng) and math.isfinite(lat)):
        logger.warning(f"Dropping coordinates: non-finite values {coords!r}")
        return None

    if lng == 0 and lat == 0:
        logger.warning("Dropping coordinates: (0, 0) placeholder")
        return None

    return GeoPoint(longitude=lng, latitude=lat)
