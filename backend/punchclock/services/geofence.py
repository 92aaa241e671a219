"""Geofence policy for job sites.

Rules:
- Only jobs flagged ``geofence`` in their config can produce violations.
- Allowed distance = geofence radius + grace distance (grace defaults to 0),
  both in feet. A point exactly on the boundary is inside.
- Without venue coordinates or a radius, a reading is a violation only
  when its reported accuracy is worse than LOW_ACCURACY_METERS.
- A punch with no location is never a violation.
"""
import logging
from typing import Optional

from punchclock.core.config import settings
from punchclock.services.geo import distance_feet

logger = logging.getLogger(__name__)


class GeofencePolicy:
    """Pure geofence checks; holds only the low-accuracy threshold."""

    def __init__(self, low_accuracy_meters: float = None):
        self.low_accuracy_meters = (
            settings.LOW_ACCURACY_METERS if low_accuracy_meters is None else low_accuracy_meters
        )

    def allowed_distance_feet(self, job) -> Optional[float]:
        if not job.geofence_radius:
            return None
        return float(job.geofence_radius) + float(job.grace_distance or 0)

    def has_venue_location(self, job) -> bool:
        return job.venue_coordinates is not None and self.allowed_distance_feet(job) is not None

    def distance_from_venue_feet(self, point, job) -> Optional[float]:
        venue = job.venue_coordinates
        if point is None or venue is None:
            return None
        return distance_feet(point, venue)

    def _low_accuracy(self, point) -> bool:
        return point.accuracy is not None and point.accuracy > self.low_accuracy_meters

    def is_within_geofence(self, point, job) -> bool:
        """Whether ``point`` lies inside the job's allowed area."""
        if point is None:
            return False
        if not self.has_venue_location(job):
            return not self._low_accuracy(point)
        return self.distance_from_venue_feet(point, job) <= self.allowed_distance_feet(job)

    def violates_geofence(self, point, job) -> bool:
        if job is None or not job.is_geofenced:
            return False
        if point is None:
            return False
        return not self.is_within_geofence(point, job)
