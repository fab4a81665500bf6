from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ...assignments.model import Assignment
from ...geo.validator import Coordinates


@dataclass(frozen=True)
class LocationDecision:
    distance_meters: Optional[int] = None
    location_name: Optional[str] = None
    within_radius: Optional[bool] = None


class TapLocationStrategy(ABC):
    """Strategy Pattern: encapsulate how a tap location is judged."""

    @abstractmethod
    def check_tap_in(self, *, assignment: Assignment, point: Coordinates) -> LocationDecision:
        raise NotImplementedError

    @abstractmethod
    def check_tap_out(self, *, assignment: Assignment, point: Optional[Coordinates]) -> LocationDecision:
        raise NotImplementedError
