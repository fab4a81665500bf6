from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..assignments.model import Assignment
from ..assignments.repository import AssignmentRepository
from ..common.datetime_utils import now_local
from ..common.locks import KeyedLocks
from ..common.validators import require_coordinates
from ..core.constants import DEFAULT_GRACE_PERIOD_MINUTES, DEFAULT_HISTORY_LIMIT, DEFAULT_TIMEZONE, MAX_HISTORY_LIMIT
from ..core.enums import Role, SessionStatus
from ..core.exceptions import (
    AlreadyTapped,
    ConcurrentModification,
    DomainError,
    Forbidden,
    NotFound,
    NotTappedIn,
    OutsideWindow,
    ValidationFailure,
)
from ..core.principal import Principal
from ..geo.validator import Coordinates, within_grace_period
from .factory import TapStrategyFactory
from .model import AttendanceSession, AttendanceStats
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class PendingRequestCounter(Protocol):
    def count_pending_for_assignment(self, assignment_id: int) -> int:
        raise NotImplementedError


def session_key(assignment_id: int, work_date: date) -> tuple:
    """Lock key shared by every writer of one attendance session."""
    return ("attendance", int(assignment_id), work_date)


class TapService:
    """Tap-in / tap-out for the student owning an assignment."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        assignments: AssignmentRepository,
        *,
        locks: KeyedLocks,
        strategy_factory: TapStrategyFactory | None = None,
        grace_minutes: int = DEFAULT_GRACE_PERIOD_MINUTES,
        timezone: str = DEFAULT_TIMEZONE,
        pending_requests: PendingRequestCounter | None = None,
    ):
        self._attendance = attendance
        self._assignments = assignments
        self._locks = locks
        self._factory = strategy_factory or TapStrategyFactory()
        self._grace_minutes = int(grace_minutes)
        self._timezone = timezone
        self._pending_requests = pending_requests

    def _now(self, now: datetime | None) -> datetime:
        return now or now_local(self._timezone)

    def _get_owned_assignment(self, assignment_id: int, principal: Principal, today: date) -> Assignment:
        assignment = self._assignments.get_by_id(int(assignment_id))
        if not assignment:
            raise NotFound("PKL assignment not found")
        if assignment.student_id != principal.user_id:
            raise Forbidden("This assignment does not belong to you")
        if not assignment.is_active_on(today):
            raise ValidationFailure("You have no active PKL assignment for today")
        return assignment

    def tap_in(
        self,
        assignment_id: int,
        principal: Principal,
        lat: float,
        lng: float,
        photo_ref: Optional[str] = None,
        *,
        tap_event_id: Optional[str] = None,
        now: datetime | None = None,
    ) -> AttendanceSession:
        now = self._now(now)
        today = now.date()
        try:
            assignment = self._get_owned_assignment(assignment_id, principal, today)
            with self._locks.hold(session_key(assignment.assignment_id, today)):
                existing = self._attendance.get_for_assignment_and_date(assignment.assignment_id, today)
                if existing:
                    if tap_event_id and existing.tap_in_event_id == tap_event_id:
                        return existing
                    raise AlreadyTapped("You have already tapped in today")

                require_coordinates(lat, lng)
                point = Coordinates(float(lat), float(lng))
                decision = self._factory.for_assignment(assignment).check_tap_in(assignment=assignment, point=point)

                expected = datetime.combine(today, assignment.work_start)
                if not within_grace_period(now, expected, self._grace_minutes):
                    raise OutsideWindow(
                        f"Tap-in is allowed only within {self._grace_minutes} minutes "
                        f"of {assignment.work_start.strftime('%H:%M')}"
                    )

                session = AttendanceSession.open(
                    assignment_id=assignment.assignment_id,
                    work_date=today,
                    at=now,
                    lat=point.lat,
                    lng=point.lng,
                    photo=photo_ref,
                    distance_m=decision.distance_meters,
                    event_id=tap_event_id,
                )
                stored = self._attendance.create(session)
                if stored is None:
                    raise AlreadyTapped("You have already tapped in today")
        except DomainError as e:
            logger.info("tap-in rejected assignment=%s kind=%s: %s", assignment_id, e.kind, e.reason)
            raise

        logger.info(
            "tap-in accepted assignment=%s session=%s distance=%s",
            stored.assignment_id,
            stored.session_id,
            stored.tap_in_distance_m,
        )
        return stored

    def tap_out(
        self,
        assignment_id: int,
        principal: Principal,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        *,
        tap_event_id: Optional[str] = None,
        now: datetime | None = None,
    ) -> AttendanceSession:
        now = self._now(now)
        today = now.date()
        try:
            assignment = self._get_owned_assignment(assignment_id, principal, today)
            with self._locks.hold(session_key(assignment.assignment_id, today)):
                session = self._attendance.get_for_assignment_and_date(assignment.assignment_id, today)
                if not session:
                    raise NotTappedIn("You have not tapped in today")
                if tap_event_id and session.tap_out_event_id == tap_event_id:
                    return session

                point = None
                if lat is not None and lng is not None:
                    require_coordinates(lat, lng)
                    point = Coordinates(float(lat), float(lng))
                decision = self._factory.for_assignment(assignment).check_tap_out(assignment=assignment, point=point)

                closed = session.close(
                    at=now,
                    lat=point.lat if point else None,
                    lng=point.lng if point else None,
                    within_radius=decision.within_radius,
                    event_id=tap_event_id,
                )
                stored = self._attendance.update(closed)
                if stored is None:
                    raise ConcurrentModification("Attendance was changed by another request, please retry")
        except DomainError as e:
            logger.info("tap-out rejected assignment=%s kind=%s: %s", assignment_id, e.kind, e.reason)
            raise

        logger.info(
            "tap-out accepted assignment=%s session=%s hours=%s",
            stored.assignment_id,
            stored.session_id,
            stored.total_hours,
        )
        return stored

    def _get_visible_assignment(self, assignment_id: int, principal: Principal) -> Assignment:
        assignment = self._assignments.get_by_id(int(assignment_id))
        if not assignment:
            raise NotFound("PKL assignment not found")
        if principal.user_id in {assignment.student_id, assignment.supervisor_id}:
            return assignment
        if principal.has_role(Role.ADMIN):
            return assignment
        raise Forbidden("You cannot view this assignment")

    def get_today(
        self, assignment_id: int, principal: Principal, *, now: datetime | None = None
    ) -> Optional[AttendanceSession]:
        assignment = self._get_visible_assignment(assignment_id, principal)
        return self._attendance.get_for_assignment_and_date(assignment.assignment_id, self._now(now).date())

    def get_history(
        self,
        assignment_id: int,
        principal: Principal,
        *,
        page: int = 1,
        limit: int = DEFAULT_HISTORY_LIMIT,
        status: Optional[SessionStatus] = None,
    ) -> Sequence[AttendanceSession]:
        assignment = self._get_visible_assignment(assignment_id, principal)
        limit = max(1, min(int(limit), MAX_HISTORY_LIMIT))
        page = max(1, int(page))
        return self._attendance.list_for_assignment(
            assignment.assignment_id,
            limit=limit,
            offset=(page - 1) * limit,
            status=status,
        )

    def get_stats(self, assignment_id: int, principal: Principal) -> AttendanceStats:
        assignment = self._get_visible_assignment(assignment_id, principal)
        counts = self._attendance.status_counts(assignment.assignment_id)
        pending = 0
        if self._pending_requests:
            pending = self._pending_requests.count_pending_for_assignment(assignment.assignment_id)
        return AttendanceStats(
            total_days=sum(counts.values()),
            completed_days=counts.get(SessionStatus.COMPLETED, 0) + counts.get(SessionStatus.CORRECTED, 0),
            absent_days=counts.get(SessionStatus.ABSENT, 0),
            total_hours=round(self._attendance.sum_hours(assignment.assignment_id), 2),
            pending_requests=pending,
        )
