from __future__ import annotations

from typing import Optional

from ...assignments.model import Assignment
from ...core.exceptions import GeofenceViolation
from ...geo.validator import Coordinates, within_radius
from .base import LocationDecision, TapLocationStrategy


class GeofenceStrategy(TapLocationStrategy):
    """Onsite placement: tap-in must fall inside one of the geofences."""

    def _closest(self, assignment: Assignment, point: Coordinates):
        best = None
        for loc in assignment.geofences():
            check = within_radius(point, loc.coordinates, loc.radius_meters)
            if check.ok:
                return loc, check
            if best is None or check.distance_meters < best[1].distance_meters:
                best = (loc, check)
        return best

    def check_tap_in(self, *, assignment: Assignment, point: Coordinates) -> LocationDecision:
        loc, check = self._closest(assignment, point)
        if not check.ok:
            raise GeofenceViolation(
                f"You are {check.distance_meters} m from {loc.name}, outside the allowed "
                f"{loc.radius_meters} m. File a manual request if you are really on site.",
                distance_meters=check.distance_meters,
                radius_meters=loc.radius_meters,
            )
        return LocationDecision(distance_meters=check.distance_meters, location_name=loc.name, within_radius=True)

    def check_tap_out(self, *, assignment: Assignment, point: Optional[Coordinates]) -> LocationDecision:
        # Tap-out never rejects on location; it only records where it happened.
        if point is None:
            return LocationDecision()
        loc, check = self._closest(assignment, point)
        return LocationDecision(distance_meters=check.distance_meters, location_name=loc.name, within_radius=check.ok)
