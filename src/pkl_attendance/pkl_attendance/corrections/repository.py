from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.enums import ApprovalStatus
from .model import ManualAttendanceRequest, NewManualRequest


class ManualRequestRepository(Protocol):
    def create(self, data: NewManualRequest) -> int:
        raise NotImplementedError

    def get(self, request_id: int) -> Optional[ManualAttendanceRequest]:
        raise NotImplementedError

    def has_pending_for_session(self, session_id: int) -> bool:
        raise NotImplementedError

    def count_for_assignment_between(self, assignment_id: int, *, start: date, end: date) -> int:
        """Requests whose work_date is in [start, end)."""

        raise NotImplementedError

    def count_pending_for_assignment(self, assignment_id: int) -> int:
        raise NotImplementedError

    def set_status(self, request_id: int, *, expected: ApprovalStatus, status: ApprovalStatus) -> bool:
        """Conditional status write; False when the request is no longer ``expected``."""

        raise NotImplementedError

    def list_pending_for_supervisor(self, supervisor_id: int, *, limit: int = 200) -> Sequence[ManualAttendanceRequest]:
        raise NotImplementedError

    def list_for_requester(self, requester_id: int, *, limit: int = 200) -> Sequence[ManualAttendanceRequest]:
        raise NotImplementedError
