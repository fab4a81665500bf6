from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import hours_between
from ..core.enums import SessionStatus
from ..core.exceptions import NotTappedIn, ValidationFailure


@dataclass(frozen=True)
class AttendanceSession:
    """Domain entity: one attendance record per (assignment, date).

    Transitions return a new instance; the repository persists it. Rows are
    never deleted, only moved between states.
    """

    session_id: int
    assignment_id: int
    work_date: date
    status: SessionStatus
    tap_in_time: Optional[datetime] = None
    tap_in_lat: Optional[float] = None
    tap_in_lng: Optional[float] = None
    tap_in_photo: Optional[str] = None
    tap_in_distance_m: Optional[int] = None
    tap_in_event_id: Optional[str] = None
    tap_out_time: Optional[datetime] = None
    tap_out_lat: Optional[float] = None
    tap_out_lng: Optional[float] = None
    tap_out_within_radius: Optional[bool] = None
    tap_out_event_id: Optional[str] = None
    closed_by_reconciliation: bool = False
    version: int = 0

    @property
    def total_hours(self) -> Optional[float]:
        """Derived from the two timestamps; never stored on its own."""
        if self.tap_in_time is None or self.tap_out_time is None:
            return None
        return hours_between(self.tap_in_time, self.tap_out_time)

    @property
    def is_open(self) -> bool:
        return self.status.is_open

    @classmethod
    def open(
        cls,
        *,
        assignment_id: int,
        work_date: date,
        at: datetime,
        lat: Optional[float],
        lng: Optional[float],
        photo: Optional[str] = None,
        distance_m: Optional[int] = None,
        event_id: Optional[str] = None,
    ) -> "AttendanceSession":
        """NotStarted -> InProgress."""
        return cls(
            session_id=0,
            assignment_id=assignment_id,
            work_date=work_date,
            status=SessionStatus.IN_PROGRESS,
            tap_in_time=at,
            tap_in_lat=lat,
            tap_in_lng=lng,
            tap_in_photo=photo,
            tap_in_distance_m=distance_m,
            tap_in_event_id=event_id,
        )

    @classmethod
    def absent(cls, *, assignment_id: int, work_date: date, by_reconciliation: bool = True) -> "AttendanceSession":
        """NotStarted -> Absent.

        Written by reconciliation, or placed under a manual request for a day
        that has no taps at all.
        """
        return cls(
            session_id=0,
            assignment_id=assignment_id,
            work_date=work_date,
            status=SessionStatus.ABSENT,
            closed_by_reconciliation=by_reconciliation,
        )

    def close(
        self,
        *,
        at: datetime,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        within_radius: Optional[bool] = None,
        event_id: Optional[str] = None,
    ) -> "AttendanceSession":
        """InProgress -> Completed."""
        if self.status != SessionStatus.IN_PROGRESS or self.tap_in_time is None:
            if self.tap_out_time is not None:
                raise NotTappedIn("You have already tapped out today")
            raise NotTappedIn("You have not tapped in today")
        if at < self.tap_in_time:
            raise ValidationFailure("Tap-out time cannot be before tap-in time")
        return replace(
            self,
            status=SessionStatus.COMPLETED,
            tap_out_time=at,
            tap_out_lat=lat,
            tap_out_lng=lng,
            tap_out_within_radius=within_radius,
            tap_out_event_id=event_id,
        )

    def auto_close(self, *, cutoff: datetime) -> "AttendanceSession":
        """InProgress -> AutoClosed (reconciliation only)."""
        if self.status != SessionStatus.IN_PROGRESS or self.tap_in_time is None:
            raise NotTappedIn(f"Session {self.session_id} is not open")
        return replace(
            self,
            status=SessionStatus.AUTO_CLOSED,
            tap_out_time=max(cutoff, self.tap_in_time),
            closed_by_reconciliation=True,
        )

    def correct(self, *, tap_in: datetime, tap_out: datetime) -> "AttendanceSession":
        """* -> Corrected (side effect of an approved manual request)."""
        if tap_out < tap_in:
            raise ValidationFailure("Tap-out time cannot be before tap-in time")
        return replace(
            self,
            status=SessionStatus.CORRECTED,
            tap_in_time=tap_in,
            tap_out_time=tap_out,
        )


@dataclass(frozen=True)
class AttendanceStats:
    total_days: int
    completed_days: int
    absent_days: int
    total_hours: float
    pending_requests: int

    @property
    def attendance_rate(self) -> int:
        if self.total_days <= 0:
            return 0
        return round(self.completed_days / self.total_days * 100)
