from __future__ import annotations

from dataclasses import dataclass

from ..assignments.model import Assignment
from .strategies.base import TapLocationStrategy
from .strategies.flexible_strategy import FlexibleStrategy
from .strategies.geofence_strategy import GeofenceStrategy


@dataclass
class TapStrategyFactory:
    """Factory Pattern: choose the location strategy for an assignment."""

    def for_assignment(self, assignment: Assignment) -> TapLocationStrategy:
        if assignment.requires_geofence:
            return GeofenceStrategy()
        return FlexibleStrategy()
