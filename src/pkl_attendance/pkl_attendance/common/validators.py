from __future__ import annotations

from typing import Optional

from ..core.exceptions import ValidationFailure


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationFailure(f"{field_name} is required")
    return value.strip()


def require_min_length(value: Optional[str], field_name: str, min_len: int) -> str:
    text = (value or "").strip()
    if len(text) < min_len:
        raise ValidationFailure(f"{field_name} must be at least {min_len} characters")
    return text


def require_coordinates(lat: float, lng: float) -> None:
    """Latitude in [-90, 90], longitude in [-180, 180]."""
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationFailure("GPS coordinates are out of range")
