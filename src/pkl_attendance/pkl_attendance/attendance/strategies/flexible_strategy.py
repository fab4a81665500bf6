from __future__ import annotations

from typing import Optional

from ...assignments.model import Assignment
from ...geo.validator import Coordinates
from .base import LocationDecision, TapLocationStrategy


class FlexibleStrategy(TapLocationStrategy):
    """Flexible placement or GPS validation switched off: location is only recorded."""

    def check_tap_in(self, *, assignment: Assignment, point: Coordinates) -> LocationDecision:
        return LocationDecision()

    def check_tap_out(self, *, assignment: Assignment, point: Optional[Coordinates]) -> LocationDecision:
        return LocationDecision()
