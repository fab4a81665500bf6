from __future__ import annotations

from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal

import pytz

from ..core.constants import DEFAULT_TIMEZONE


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_hhmm(value: str) -> time:
    """Parse HH:MM string into time."""
    return datetime.strptime(value.strip(), "%H:%M").time()


def now_local(timezone: str = DEFAULT_TIMEZONE) -> datetime:
    """Current civil time in the system timezone, as a naive datetime.

    Note: Wrapped so tests can patch/mocked easier. All stored timestamps are
    naive civil times in the one configured zone.
    """
    return datetime.now(pytz.timezone(timezone)).replace(tzinfo=None)


def to_local_naive(value: datetime, timezone: str = DEFAULT_TIMEZONE) -> datetime:
    """Offset-aware values are shifted into the system zone; naive ones are kept as is."""
    if value.tzinfo is None:
        return value
    return value.astimezone(pytz.timezone(timezone)).replace(tzinfo=None)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, truncated toward zero."""
    return int((end - start).total_seconds() / 60)


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed whole minutes divided by 60, rounded half-up to 2 decimals."""
    hours = Decimal(minutes_between(start, end)) / Decimal(60)
    return float(hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def month_bounds(day: date) -> tuple[date, date]:
    start = day.replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end
