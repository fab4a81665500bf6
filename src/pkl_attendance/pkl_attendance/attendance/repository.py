from __future__ import annotations

from datetime import date
from typing import Mapping, Optional, Protocol, Sequence

from ..core.enums import SessionStatus
from .model import AttendanceSession


class AttendanceRepository(Protocol):
    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def get_for_assignment_and_date(self, assignment_id: int, work_date: date) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def list_for_assignment(
        self,
        assignment_id: int,
        *,
        limit: int,
        offset: int = 0,
        status: Optional[SessionStatus] = None,
    ) -> Sequence[AttendanceSession]:
        raise NotImplementedError

    def create(self, session: AttendanceSession) -> Optional[AttendanceSession]:
        """Insert a new session.

        Returns None when a session already exists for (assignment, date).
        """

        raise NotImplementedError

    def update(self, session: AttendanceSession) -> Optional[AttendanceSession]:
        """Persist a transition guarded by ``session.version``.

        Returns the stored session (version bumped) or None when the row was
        changed by someone else in the meantime.
        """

        raise NotImplementedError

    def status_counts(self, assignment_id: int) -> Mapping[SessionStatus, int]:
        raise NotImplementedError

    def sum_hours(self, assignment_id: int) -> float:
        raise NotImplementedError
