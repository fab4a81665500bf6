from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import ApprovalStatus, LeavePermitStatus, RequesterType
from .model import LeavePermit, NewLeavePermit


class LeavePermitRepository(Protocol):
    def create(self, data: NewLeavePermit) -> int:
        """Insert the permit and one member row per member id."""

        raise NotImplementedError

    def get(self, permit_id: int) -> Optional[LeavePermit]:
        raise NotImplementedError

    def set_status(
        self, permit_id: int, *, expected: LeavePermitStatus, status: LeavePermitStatus
    ) -> bool:
        raise NotImplementedError

    def mark_members(
        self,
        permit_id: int,
        user_ids: Sequence[int],
        *,
        status: ApprovalStatus,
        expected: ApprovalStatus = ApprovalStatus.PENDING,
    ) -> int:
        """Returns how many member rows moved from ``expected`` to ``status``."""

        raise NotImplementedError

    def set_confirmed_return(self, permit_id: int, confirmed_return: datetime) -> None:
        raise NotImplementedError

    def complete(self, permit_id: int, *, returned_at: datetime, notes: Optional[str]) -> bool:
        """Record the return once; False if it was already recorded."""

        raise NotImplementedError

    def list_for_user(self, user_id: int, *, limit: int = 200) -> Sequence[LeavePermit]:
        """Permits requested by, or naming, ``user_id``."""

        raise NotImplementedError

    def list_by_status(
        self,
        status: LeavePermitStatus,
        *,
        requester_type: Optional[RequesterType] = None,
        limit: int = 200,
    ) -> Sequence[LeavePermit]:
        raise NotImplementedError
