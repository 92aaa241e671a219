"""Great-circle distance and GPS payload parsing."""
import json
import logging
import math
from typing import Optional

from pydantic import BaseModel

from punchclock.schemas.punch import Coordinates

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371000
EARTH_RADIUS_MILES = 3959
FEET_PER_MILE = 5280


def _haversine(lat1, lng1, lat2, lng2, radius):
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return radius * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_meters(a, b) -> float:
    """Distance in meters between two points with ``latitude``/``longitude``."""
    return _haversine(a.latitude, a.longitude, b.latitude, b.longitude, EARTH_RADIUS_METERS)


def distance_feet(a, b) -> float:
    """Distance in feet, using the mile-based earth radius job radii were tuned with."""
    miles = _haversine(a.latitude, a.longitude, b.latitude, b.longitude, EARTH_RADIUS_MILES)
    return miles * FEET_PER_MILE


def _is_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def parse_coordinates(payload) -> Optional[Coordinates]:
    """Parse a device GPS payload into Coordinates.

    Accepts a dict, a JSON string, or a pydantic model. Returns None when
    the payload is missing or malformed: latitude, longitude and accuracy
    must all be finite numbers, latitude/longitude must be non-zero and
    within +/-90 / +/-180.
    """
    if payload is None or payload == "":
        return None

    data = payload
    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except ValueError:
            logger.info(f"Unparseable coordinates payload: {payload[:100]!r}")
            return None
    elif isinstance(payload, BaseModel):
        data = payload.model_dump()

    if not isinstance(data, dict):
        return None

    lat = data.get("latitude", data.get("lat"))
    lng = data.get("longitude", data.get("lng"))
    accuracy = data.get("accuracy")

    if not (_is_number(lat) and _is_number(lng) and _is_number(accuracy)):
        return None
    if lat == 0 or lng == 0:
        return None
    if abs(lat) > 90 or abs(lng) > 180:
        return None

    return Coordinates(latitude=float(lat), longitude=float(lng), accuracy=float(accuracy))
