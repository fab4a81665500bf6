from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from ..core.enums import ApprovalStatus, LeavePermitStatus, LeaveType, RequesterType
from ..workflow.model import ApprovalDecision


@dataclass(frozen=True)
class LeaveMember:
    user_id: int
    status: ApprovalStatus = ApprovalStatus.PENDING


@dataclass(frozen=True)
class LeavePermit:
    """Request to leave the premises, for one person or a named group."""

    permit_id: int
    requester_id: int
    requester_type: RequesterType
    leave_type: LeaveType
    reason: str
    start_time: datetime
    status: LeavePermitStatus
    created_at: datetime
    estimated_return: Optional[datetime] = None
    confirmed_return: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    completion_notes: Optional[str] = None
    members: Tuple[LeaveMember, ...] = ()
    decisions: Tuple[ApprovalDecision, ...] = field(default_factory=tuple)

    @property
    def member_ids(self) -> Tuple[int, ...]:
        return tuple(m.user_id for m in self.members)

    @property
    def is_completed(self) -> bool:
        return self.returned_at is not None


@dataclass(frozen=True)
class NewLeavePermit:
    requester_id: int
    requester_type: RequesterType
    leave_type: LeaveType
    reason: str
    start_time: datetime
    status: LeavePermitStatus
    member_ids: Tuple[int, ...]
    estimated_return: Optional[datetime] = None
