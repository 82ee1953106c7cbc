"""Great-circle distance and location-blob parsing."""
import json
import math
from typing import Any, NamedTuple, Optional

EARTH_RADIUS_KM = 6371.0


class GeoPoint(NamedTuple):
    lat: float
    lng: float


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in kilometres between two points in decimal degrees."""
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    lat1r = math.radians(lat1)
    lat2r = math.radians(lat2)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1r) * math.cos(lat2r) * math.sin(dlng / 2) ** 2
    # rounding can push h just past 1 for near-antipodal points
    h = min(1.0, max(0.0, h))
    c = 2 * math.asin(math.sqrt(h))
    return EARTH_RADIUS_KM * c


def distance_between(a: Optional[GeoPoint], b: Optional[GeoPoint]) -> Optional[float]:
    if a is None or b is None:
        return None
    return distance_km(a.lat, a.lng, b.lat, b.lng)


def _coerce(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(f) or math.isinf(f):
        return None
    return f


def _point(lat: Any, lng: Any) -> Optional[GeoPoint]:
    la, ln = _coerce(lat), _coerce(lng)
    if la is None or ln is None:
        return None
    if not (-90.0 <= la <= 90.0 and -180.0 <= ln <= 180.0):
        return None
    return GeoPoint(la, ln)


def parse_location(blob: Any) -> Optional[GeoPoint]:
    """Extract coordinates from a stored location blob.

    Accepts a dict or its JSON string form in the shapes the two client
    generations write:
    - geocoder result: ``{"geometry": {"location": {"lat": .., "lng": ..}}}``
    - profile form: ``{"latitude": "-33.86", "longitude": "151.2"}``
    - flat ``lat``/``lng`` (or ``lon``)

    Anything else, including out-of-range numbers, is ``None`` (unknown).
    """
    if blob is None or blob == "":
        return None
    if isinstance(blob, str):
        try:
            blob = json.loads(blob)
        except ValueError:
            return None
    if not isinstance(blob, dict):
        return None
    geometry = blob.get("geometry")
    if isinstance(geometry, dict) and isinstance(geometry.get("location"), dict):
        loc = geometry["location"]
        pt = _point(loc.get("lat"), loc.get("lng", loc.get("lon")))
        if pt:
            return pt
    if "latitude" in blob or "longitude" in blob:
        pt = _point(blob.get("latitude"), blob.get("longitude"))
        if pt:
            return pt
    return _point(blob.get("lat"), blob.get("lng", blob.get("lon")))


def location_label(blob: Any) -> str:
    """Human-readable address for reporting (``formatted_address`` or city/state)."""
    if isinstance(blob, str):
        try:
            blob = json.loads(blob)
        except ValueError:
            return blob
    if not isinstance(blob, dict):
        return ""
    if blob.get("formatted_address"):
        return str(blob["formatted_address"])
    parts = [str(blob[k]) for k in ("city", "state", "country") if blob.get(k)]
    return ", ".join(parts)
