from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Tuple

from ..core.enums import ApprovalStatus
from ..workflow.model import ApprovalDecision


@dataclass(frozen=True)
class ManualAttendanceRequest:
    """A student's proposal to override one attendance session."""

    request_id: int
    session_id: int
    assignment_id: int
    requester_id: int
    work_date: date
    claimed_tap_in: datetime
    claimed_tap_out: datetime
    justification: str
    status: ApprovalStatus
    created_at: datetime
    evidence_urls: Tuple[str, ...] = ()
    witness_name: Optional[str] = None
    decisions: Tuple[ApprovalDecision, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class NewManualRequest:
    session_id: int
    assignment_id: int
    requester_id: int
    work_date: date
    claimed_tap_in: datetime
    claimed_tap_out: datetime
    justification: str
    evidence_urls: Tuple[str, ...] = ()
    witness_name: Optional[str] = None
