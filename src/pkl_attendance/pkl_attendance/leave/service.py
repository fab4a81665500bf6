"""Leave permits.

Student permits pass two approvers: the duty officer (Piket) opens the
review, then the homeroom teacher (or Waka) decides. Teacher permits skip
the duty officer and go straight to school leadership. A group permit
covers every named member; its approval marks all member rows in one batch
or none of them.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Hashable, Iterable, List, Mapping, Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.locks import KeyedLocks
from ..common.validators import require_min_length
from ..core.constants import DEFAULT_TIMEZONE, MIN_LEAVE_REASON_LENGTH
from ..core.enums import ApprovalStatus, Decision, LeavePermitStatus, LeaveType, RequesterType, Role
from ..core.exceptions import ConcurrentModification, DomainError, Forbidden, NotFound, ValidationFailure
from ..core.principal import Principal
from ..database.connection import TransactionManager
from ..workflow.engine import ApprovalKind, ApprovalWorkflow
from ..workflow.model import ApprovalDecision, ApproverRule, DecisionResult
from ..workflow.repository import DecisionRepository
from .model import LeavePermit, NewLeavePermit
from .repository import LeavePermitRepository

logger = logging.getLogger(__name__)

LEAVE_PERMIT_KIND = "leave_permit"

STAFF_ROLES = (
    Role.TEACHER,
    Role.SUPERVISOR,
    Role.WALI_KELAS,
    Role.WAKA,
    Role.KEPALA_SEKOLAH,
    Role.PIKET,
)


def _not_involved(principal: Principal, permit: LeavePermit) -> bool:
    return principal.user_id != permit.requester_id and principal.user_id not in permit.member_ids


def _role_rule(label: str, *roles: Role) -> ApproverRule[LeavePermit]:
    def check(principal: Principal, permit: LeavePermit) -> bool:
        return _not_involved(principal, permit) and principal.has_role(*roles, Role.ADMIN)

    return ApproverRule(label, check)


STUDENT_CHAIN = (
    _role_rule("duty officer", Role.PIKET),
    _role_rule("homeroom teacher", Role.WALI_KELAS, Role.WAKA),
)
TEACHER_CHAIN = (_role_rule("school leadership", Role.WAKA, Role.KEPALA_SEKOLAH),)


class LeavePermitKind(ApprovalKind[LeavePermit]):
    name = LEAVE_PERMIT_KIND
    approved_label = LeavePermitStatus.CLOSE.value
    rejected_label = LeavePermitStatus.DITOLAK.value
    in_review_label = LeavePermitStatus.PROSES.value
    reject_requires_reason = True

    def __init__(self, permits: LeavePermitRepository, decisions: DecisionRepository):
        self._permits = permits
        self._decisions = decisions

    def load(self, request_id: int) -> Optional[LeavePermit]:
        permit = self._permits.get(request_id)
        if permit is None:
            return None
        history = self._decisions.list_for(request_kind=self.name, request_id=permit.permit_id)
        return replace(permit, decisions=tuple(history))

    def status_of(self, request: LeavePermit) -> str:
        return request.status.value

    def decisions_of(self, request: LeavePermit) -> Sequence[ApprovalDecision]:
        return request.decisions

    def lock_key(self, request: LeavePermit) -> Optional[Hashable]:
        return ("leave", request.permit_id)

    def approver_chain(self, request: LeavePermit) -> Sequence[ApproverRule[LeavePermit]]:
        if request.requester_type == RequesterType.TEACHER:
            return TEACHER_CHAIN
        return STUDENT_CHAIN

    def apply(self, request: LeavePermit, decision: ApprovalDecision, details: Mapping[str, Any]) -> None:
        members = request.member_ids
        updated = self._permits.mark_members(request.permit_id, members, status=ApprovalStatus.APPROVED)
        if updated != len(members):
            raise ConcurrentModification(
                "Not every member of the permit could be approved; nothing was changed",
                details={"expected": len(members), "updated": updated},
            )
        confirmed_return = details.get("confirmed_return")
        if confirmed_return is not None:
            if confirmed_return < request.start_time:
                raise ValidationFailure("Confirmed return cannot be before the leave starts")
            self._permits.set_confirmed_return(request.permit_id, confirmed_return)

    def record(self, request: LeavePermit, decision: ApprovalDecision, new_status: str) -> None:
        status = LeavePermitStatus(new_status)
        if status != request.status:
            if not self._permits.set_status(request.permit_id, expected=request.status, status=status):
                raise ConcurrentModification("Permit was decided by someone else, please reload")
        if status == LeavePermitStatus.DITOLAK:
            self._permits.mark_members(request.permit_id, request.member_ids, status=ApprovalStatus.REJECTED)
        self._decisions.add(request_kind=self.name, request_id=request.permit_id, decision=decision)


class LeaveService:
    def __init__(
        self,
        permits: LeavePermitRepository,
        decisions: DecisionRepository,
        *,
        transactions: TransactionManager,
        locks: KeyedLocks,
        timezone: str = DEFAULT_TIMEZONE,
        min_reason_length: int = MIN_LEAVE_REASON_LENGTH,
    ):
        self._permits = permits
        self._transactions = transactions
        self._timezone = timezone
        self._min_reason_length = int(min_reason_length)
        self._workflow = ApprovalWorkflow(
            LeavePermitKind(permits, decisions),
            transactions=transactions,
            locks=locks,
            timezone=timezone,
        )

    @property
    def workflow(self) -> ApprovalWorkflow[LeavePermit]:
        return self._workflow

    def _requester_type(self, principal: Principal, requested: Optional[RequesterType]) -> RequesterType:
        if requested is None:
            return RequesterType.STUDENT if principal.has_role(Role.STUDENT) else RequesterType.TEACHER
        if requested == RequesterType.STUDENT and not principal.has_role(Role.STUDENT):
            raise Forbidden("Only students can file a student leave permit")
        if requested == RequesterType.TEACHER and not principal.has_role(*STAFF_ROLES):
            raise Forbidden("Only school staff can file a teacher leave permit")
        return requested

    def create_leave_permit(
        self,
        principal: Principal,
        leave_type: LeaveType | str,
        reason: str,
        start_time: datetime,
        estimated_return: Optional[datetime] = None,
        member_ids: Iterable[int] = (),
        *,
        requester_type: RequesterType | str | None = None,
    ) -> LeavePermit:
        try:
            try:
                leave_type = LeaveType(leave_type)
                requester_type = RequesterType(requester_type) if requester_type is not None else None
            except ValueError as e:
                raise ValidationFailure(str(e))
            requester_type = self._requester_type(principal, requester_type)
            text = require_min_length(reason, "reason", self._min_reason_length)
            # Mon=0 .. Sun=6; no school on weekends.
            if start_time.weekday() >= 5:
                raise ValidationFailure("Leave permits cannot start on a Saturday or Sunday")
            if estimated_return is not None and estimated_return <= start_time:
                raise ValidationFailure("Estimated return must be after the start time")

            others: List[int] = []
            for uid in member_ids:
                uid = int(uid)
                if uid != principal.user_id and uid not in others:
                    others.append(uid)

            if requester_type == RequesterType.TEACHER and leave_type != LeaveType.INDIVIDUAL:
                raise ValidationFailure("Teacher leave permits are always individual")
            if leave_type == LeaveType.GROUP and not others:
                raise ValidationFailure("A group permit needs at least one other member")
            if leave_type == LeaveType.INDIVIDUAL and others:
                raise ValidationFailure("An individual permit cannot name other members")

            status = LeavePermitStatus.OPEN if requester_type == RequesterType.STUDENT else LeavePermitStatus.PROSES
            with self._transactions.atomic():
                permit_id = self._permits.create(
                    NewLeavePermit(
                        requester_id=principal.user_id,
                        requester_type=requester_type,
                        leave_type=leave_type,
                        reason=text,
                        start_time=start_time,
                        status=status,
                        member_ids=(principal.user_id, *others),
                        estimated_return=estimated_return,
                    )
                )
        except DomainError as e:
            logger.info("leave permit rejected user=%s kind=%s: %s", principal.user_id, e.kind, e.reason)
            raise

        logger.info(
            "leave permit %s filed user=%s type=%s members=%s",
            permit_id,
            principal.user_id,
            leave_type.value,
            len(others) + 1,
        )
        return self.get_permit(permit_id, principal)

    def start_review(self, permit_id: int, principal: Principal, notes: Optional[str] = "") -> DecisionResult:
        """Duty officer takes an Open student permit into review (Open -> Proses)."""
        permit = self._workflow.kind.load(int(permit_id))
        if permit is None:
            raise NotFound(f"{LEAVE_PERMIT_KIND} {permit_id} not found")
        if permit.status != LeavePermitStatus.OPEN:
            raise ValidationFailure("Only open permits can be taken into review")
        return self._workflow.decide(permit_id, principal, Decision.APPROVED, notes)

    def decide_leave_permit(
        self,
        permit_id: int,
        approver: Principal,
        decision: Decision | str,
        notes: Optional[str] = "",
        *,
        confirmed_return: Optional[datetime] = None,
        now: datetime | None = None,
    ) -> DecisionResult:
        return self._workflow.decide(
            permit_id, approver, decision, notes, now=now, confirmed_return=confirmed_return
        )

    def complete_leave_permit(
        self,
        permit_id: int,
        principal: Principal,
        notes: Optional[str] = None,
        *,
        returned_at: datetime | None = None,
    ) -> LeavePermit:
        """Record that the person came back from an approved leave."""
        permit = self._workflow.kind.load(int(permit_id))
        if permit is None:
            raise NotFound(f"{LEAVE_PERMIT_KIND} {permit_id} not found")
        if principal.user_id != permit.requester_id and not principal.has_role(Role.PIKET, Role.ADMIN):
            raise Forbidden("Only the requester or the duty officer can complete this permit")
        if permit.status != LeavePermitStatus.CLOSE:
            raise ValidationFailure("Only approved permits can be completed")
        if permit.is_completed:
            raise ValidationFailure("The return has already been recorded")
        returned_at = returned_at or now_local(self._timezone)
        if returned_at < permit.start_time:
            raise ValidationFailure("Return time cannot be before the leave starts")

        if not self._permits.complete(permit.permit_id, returned_at=returned_at, notes=(notes or "").strip() or None):
            raise ConcurrentModification("The return was recorded by someone else, please reload")
        logger.info("leave permit %s completed by user=%s", permit.permit_id, principal.user_id)
        return self.get_permit(permit.permit_id, principal)

    def get_permit(self, permit_id: int, principal: Principal) -> LeavePermit:
        permit = self._workflow.kind.load(int(permit_id))
        if permit is None:
            raise NotFound(f"{LEAVE_PERMIT_KIND} {permit_id} not found")
        if not _not_involved(principal, permit) or principal.has_role(*STAFF_ROLES, Role.ADMIN):
            return permit
        raise Forbidden("You cannot view this permit")

    def list_for_requester(self, principal: Principal) -> Sequence[LeavePermit]:
        return self._permits.list_for_user(principal.user_id)

    def list_awaiting(self, principal: Principal) -> Sequence[LeavePermit]:
        """Permits whose current approval step ``principal`` may decide."""
        candidates: List[LeavePermit] = []
        if principal.has_role(Role.PIKET, Role.ADMIN):
            candidates.extend(self._permits.list_by_status(LeavePermitStatus.OPEN))
        if principal.has_role(Role.WALI_KELAS, Role.WAKA, Role.KEPALA_SEKOLAH, Role.ADMIN):
            candidates.extend(self._permits.list_by_status(LeavePermitStatus.PROSES))

        kind = self._workflow.kind
        out: List[LeavePermit] = []
        for permit in candidates:
            # Decisions are not needed to pick the step: Open is always step 0,
            # Proses is the last step of its chain.
            chain = kind.approver_chain(permit)
            step = 0 if permit.status == LeavePermitStatus.OPEN else len(chain) - 1
            if chain[step].allows(principal, permit):
                out.append(permit)
        return out
