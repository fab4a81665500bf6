from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from typing import FrozenSet, Optional, Tuple

from ..core.constants import DEFAULT_RADIUS_METERS, DEFAULT_WORK_DAYS
from ..core.enums import AssignmentStatus, PlacementType
from ..geo.validator import Coordinates


@dataclass(frozen=True)
class AllowedLocation:
    location_id: int
    name: str
    lat: float
    lng: float
    radius_meters: int = DEFAULT_RADIUS_METERS

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(self.lat, self.lng)


@dataclass(frozen=True)
class Assignment:
    """A student's placement at a site for a date range.

    Owned by the admin subsystem; read-only here.
    """

    assignment_id: int
    student_id: int
    supervisor_id: Optional[int]
    site_name: str
    site_lat: float
    site_lng: float
    work_start: time
    work_end: time
    start_date: date
    end_date: date
    radius_meters: Optional[int] = None
    status: AssignmentStatus = AssignmentStatus.ACTIVE
    placement_type: PlacementType = PlacementType.ONSITE
    require_gps_validation: bool = True
    work_days: FrozenSet[int] = DEFAULT_WORK_DAYS
    allowed_locations: Tuple[AllowedLocation, ...] = field(default_factory=tuple)

    @property
    def site(self) -> Coordinates:
        return Coordinates(self.site_lat, self.site_lng)

    @property
    def effective_radius(self) -> int:
        return int(self.radius_meters) if self.radius_meters is not None else DEFAULT_RADIUS_METERS

    @property
    def requires_geofence(self) -> bool:
        return self.require_gps_validation and self.placement_type != PlacementType.FLEXIBLE

    def is_active_on(self, day: date) -> bool:
        return self.status == AssignmentStatus.ACTIVE and self.start_date <= day <= self.end_date

    def is_work_day(self, day: date) -> bool:
        return day.weekday() in self.work_days

    def geofences(self) -> Tuple[AllowedLocation, ...]:
        """Allowed locations, falling back to the site itself."""
        if self.allowed_locations:
            return self.allowed_locations
        return (
            AllowedLocation(
                location_id=0,
                name=self.site_name,
                lat=self.site_lat,
                lng=self.site_lng,
                radius_meters=self.effective_radius,
            ),
        )
