"""Manual attendance corrections.

A student who could not tap (dead phone, GPS failure) files a request with
the times they claim; their supervisor approves or rejects it. Approval
rewrites the session's times and marks it Corrected in the same transaction
as the request's status change.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Hashable, Iterable, Mapping, Optional, Sequence

from ..assignments.repository import AssignmentRepository
from ..attendance.model import AttendanceSession
from ..attendance.repository import AttendanceRepository
from ..attendance.service import session_key
from ..common.datetime_utils import month_bounds, now_local
from ..common.locks import KeyedLocks
from ..common.validators import require_min_length
from ..core.constants import DEFAULT_TIMEZONE, MAX_MANUAL_REQUESTS_PER_MONTH, MIN_JUSTIFICATION_LENGTH
from ..core.enums import ApprovalStatus, Decision, Role, SessionStatus
from ..core.exceptions import ConcurrentModification, DomainError, Forbidden, NotFound, ValidationFailure
from ..core.principal import Principal
from ..database.connection import TransactionManager
from ..workflow.engine import ApprovalKind, ApprovalWorkflow
from ..workflow.model import ApprovalDecision, ApproverRule, DecisionResult
from ..workflow.repository import DecisionRepository
from .model import ManualAttendanceRequest, NewManualRequest
from .repository import ManualRequestRepository

logger = logging.getLogger(__name__)

MANUAL_REQUEST_KIND = "manual_attendance"


class ManualCorrectionKind(ApprovalKind[ManualAttendanceRequest]):
    name = MANUAL_REQUEST_KIND
    approved_label = ApprovalStatus.APPROVED.value
    rejected_label = ApprovalStatus.REJECTED.value

    def __init__(
        self,
        requests: ManualRequestRepository,
        decisions: DecisionRepository,
        attendance: AttendanceRepository,
        assignments: AssignmentRepository,
    ):
        self._requests = requests
        self._decisions = decisions
        self._attendance = attendance
        self._assignments = assignments

    def load(self, request_id: int) -> Optional[ManualAttendanceRequest]:
        request = self._requests.get(request_id)
        if request is None:
            return None
        history = self._decisions.list_for(request_kind=self.name, request_id=request.request_id)
        return replace(request, decisions=tuple(history))

    def status_of(self, request: ManualAttendanceRequest) -> str:
        return request.status.value

    def decisions_of(self, request: ManualAttendanceRequest) -> Sequence[ApprovalDecision]:
        return request.decisions

    def lock_key(self, request: ManualAttendanceRequest) -> Optional[Hashable]:
        return session_key(request.assignment_id, request.work_date)

    def _is_supervisor(self, principal: Principal, request: ManualAttendanceRequest) -> bool:
        if principal.has_role(Role.ADMIN):
            return True
        assignment = self._assignments.get_by_id(request.assignment_id)
        return (
            assignment is not None
            and assignment.supervisor_id == principal.user_id
            and principal.has_role(Role.TEACHER, Role.SUPERVISOR)
        )

    def approver_chain(self, request: ManualAttendanceRequest) -> Sequence[ApproverRule[ManualAttendanceRequest]]:
        return [ApproverRule("assignment supervisor", self._is_supervisor)]

    def apply(self, request: ManualAttendanceRequest, decision: ApprovalDecision, details: Mapping[str, Any]) -> None:
        session = self._attendance.get_by_id(request.session_id)
        if session is None:
            raise NotFound(f"Attendance session {request.session_id} not found")
        corrected = session.correct(tap_in=request.claimed_tap_in, tap_out=request.claimed_tap_out)
        if self._attendance.update(corrected) is None:
            raise ConcurrentModification("Attendance was changed by another request, please retry")

    def record(self, request: ManualAttendanceRequest, decision: ApprovalDecision, new_status: str) -> None:
        changed = self._requests.set_status(
            request.request_id,
            expected=request.status,
            status=ApprovalStatus(new_status),
        )
        if not changed:
            raise ConcurrentModification("Request was decided by someone else, please reload")
        self._decisions.add(request_kind=self.name, request_id=request.request_id, decision=decision)


class CorrectionService:
    def __init__(
        self,
        requests: ManualRequestRepository,
        decisions: DecisionRepository,
        attendance: AttendanceRepository,
        assignments: AssignmentRepository,
        *,
        transactions: TransactionManager,
        locks: KeyedLocks,
        timezone: str = DEFAULT_TIMEZONE,
        max_per_month: int = MAX_MANUAL_REQUESTS_PER_MONTH,
        min_justification_length: int = MIN_JUSTIFICATION_LENGTH,
    ):
        self._requests = requests
        self._attendance = attendance
        self._assignments = assignments
        self._transactions = transactions
        self._locks = locks
        self._timezone = timezone
        self._max_per_month = int(max_per_month)
        self._min_justification_length = int(min_justification_length)
        self._workflow = ApprovalWorkflow(
            ManualCorrectionKind(requests, decisions, attendance, assignments),
            transactions=transactions,
            locks=locks,
            timezone=timezone,
        )

    @property
    def workflow(self) -> ApprovalWorkflow[ManualAttendanceRequest]:
        return self._workflow

    def request_manual_correction(
        self,
        assignment_id: int,
        principal: Principal,
        work_date: date,
        claimed_tap_in: datetime,
        claimed_tap_out: datetime,
        justification: str,
        evidence_urls: Iterable[str] = (),
        witness_name: Optional[str] = None,
        *,
        now: datetime | None = None,
    ) -> ManualAttendanceRequest:
        now = now or now_local(self._timezone)
        try:
            assignment = self._assignments.get_by_id(int(assignment_id))
            if not assignment:
                raise NotFound("PKL assignment not found")
            if assignment.student_id != principal.user_id:
                raise Forbidden("This assignment does not belong to you")

            if work_date > now.date():
                raise ValidationFailure("Cannot request a correction for a future date")
            if not assignment.is_active_on(work_date):
                raise ValidationFailure("The assignment was not active on that date")
            if claimed_tap_in.date() != work_date or claimed_tap_out.date() != work_date:
                raise ValidationFailure("Claimed times must fall on the requested date")
            if claimed_tap_out <= claimed_tap_in:
                raise ValidationFailure("Claimed tap-out must be after tap-in")
            text = require_min_length(justification, "justification", self._min_justification_length)
            evidence = tuple(u.strip() for u in evidence_urls if u and u.strip())
            witness = (witness_name or "").strip() or None

            with self._locks.hold(session_key(assignment.assignment_id, work_date)):
                session = self._attendance.get_for_assignment_and_date(assignment.assignment_id, work_date)
                if session is not None:
                    if session.status == SessionStatus.IN_PROGRESS:
                        raise ValidationFailure("Tap out first, or wait until the day is reconciled")
                    if self._requests.has_pending_for_session(session.session_id):
                        raise ValidationFailure("A pending request already exists for this date")

                first, next_first = month_bounds(work_date)
                used = self._requests.count_for_assignment_between(
                    assignment.assignment_id, start=first, end=next_first
                )
                if used >= self._max_per_month:
                    raise ValidationFailure(
                        f"At most {self._max_per_month} manual requests per month are allowed",
                        details={"used": used},
                    )

                with self._transactions.atomic():
                    if session is None:
                        session = self._attendance.create(
                            AttendanceSession.absent(
                                assignment_id=assignment.assignment_id,
                                work_date=work_date,
                                by_reconciliation=False,
                            )
                        )
                        if session is None:
                            raise ConcurrentModification("Attendance was recorded meanwhile, please retry")
                    request_id = self._requests.create(
                        NewManualRequest(
                            session_id=session.session_id,
                            assignment_id=assignment.assignment_id,
                            requester_id=principal.user_id,
                            work_date=work_date,
                            claimed_tap_in=claimed_tap_in,
                            claimed_tap_out=claimed_tap_out,
                            justification=text,
                            evidence_urls=evidence,
                            witness_name=witness,
                        )
                    )
        except DomainError as e:
            logger.info("manual request rejected assignment=%s kind=%s: %s", assignment_id, e.kind, e.reason)
            raise

        logger.info("manual request %s filed assignment=%s date=%s", request_id, assignment_id, work_date)
        created = self._requests.get(request_id)
        if created is None:
            raise NotFound(f"{MANUAL_REQUEST_KIND} {request_id} not found")
        return created

    def decide_manual_correction(
        self,
        request_id: int,
        approver: Principal,
        decision: Decision | str,
        notes: Optional[str] = "",
        *,
        now: datetime | None = None,
    ) -> DecisionResult:
        return self._workflow.decide(request_id, approver, decision, notes, now=now)

    def get_request(self, request_id: int, principal: Principal) -> ManualAttendanceRequest:
        request = self._workflow.kind.load(int(request_id))
        if request is None:
            raise NotFound(f"{MANUAL_REQUEST_KIND} {request_id} not found")
        if principal.user_id == request.requester_id or principal.has_role(Role.ADMIN):
            return request
        assignment = self._assignments.get_by_id(request.assignment_id)
        if assignment and assignment.supervisor_id == principal.user_id:
            return request
        raise Forbidden("You cannot view this request")

    def list_pending_for_supervisor(self, principal: Principal) -> Sequence[ManualAttendanceRequest]:
        if not principal.has_role(Role.TEACHER, Role.SUPERVISOR, Role.ADMIN):
            raise Forbidden("Only supervisors can review manual requests")
        return self._requests.list_pending_for_supervisor(principal.user_id)

    def list_mine(self, principal: Principal) -> Sequence[ManualAttendanceRequest]:
        return self._requests.list_for_requester(principal.user_id)

    def count_pending_for_assignment(self, assignment_id: int) -> int:
        return self._requests.count_pending_for_assignment(assignment_id)
