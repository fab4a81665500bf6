from __future__ import annotations

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base exception for business rule violations.

    Every subclass carries a stable ``kind`` so callers (HTTP layer, audit log)
    can branch on it without matching on message text.
    """

    kind = "DomainError"
    retryable = False

    def __init__(self, reason: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(reason)
        self.reason = reason
        self.details = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.reason, **self.details}


class ValidationFailure(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    kind = "ValidationFailure"


class NotFound(ValidationFailure):
    kind = "NotFound"


class GeofenceViolation(DomainError):
    """Tap location is outside the allowed radius."""

    kind = "GeofenceViolation"

    def __init__(self, reason: str, *, distance_meters: int, radius_meters: int):
        super().__init__(reason, details={"distance_meters": distance_meters, "radius_meters": radius_meters})
        self.distance_meters = distance_meters
        self.radius_meters = radius_meters


class OutsideWindow(DomainError):
    """Tap attempted outside the grace period around the expected time."""

    kind = "OutsideWindow"


class AlreadyTapped(DomainError):
    kind = "AlreadyTapped"


class NotTappedIn(DomainError):
    kind = "NotTappedIn"


class AlreadyDecided(DomainError):
    kind = "AlreadyDecided"


class Forbidden(DomainError):
    """Raised when a principal lacks permission for an action."""

    kind = "Forbidden"


class ConcurrentModification(DomainError):
    """Lock or version conflict. Safe to retry."""

    kind = "ConcurrentModification"
    retryable = True


class Timeout(DomainError):
    """An external dependency did not answer in time. Safe to retry."""

    kind = "Timeout"
    retryable = True
