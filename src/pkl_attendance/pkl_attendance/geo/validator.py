"""Geofence and grace-period checks.

Pure functions; coordinates are assumed range-checked upstream.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime

from ..common.datetime_utils import minutes_between
from ..core.constants import EARTH_RADIUS_METERS


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class RadiusCheck:
    ok: bool
    distance_meters: int


def distance(lat1: float, lng1: float, lat2: float, lng2: float) -> int:
    """Great-circle (Haversine) distance in meters, rounded to a whole meter."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return int(round(EARTH_RADIUS_METERS * c))


def within_radius(current: Coordinates, target: Coordinates, radius_meters: float) -> RadiusCheck:
    meters = distance(current.lat, current.lng, target.lat, target.lng)
    return RadiusCheck(ok=meters <= radius_meters, distance_meters=meters)


def within_grace_period(now: datetime, target: datetime, grace_minutes: int) -> bool:
    """True when now is at most grace_minutes before or after target."""
    return abs(minutes_between(target, now)) <= grace_minutes


def is_valid_coordinates(lat: float, lng: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lng <= 180
