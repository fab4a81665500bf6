"""Generic multi-party approval workflow.

A request kind (manual attendance correction, leave permit, ...) plugs in by
subclassing :class:`ApprovalKind`. The engine owns the shared rules: terminal
requests cannot be decided again, only the current step's approver may
decide, and the terminal status write plus the kind's ``apply`` effect run in
one transaction.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import nullcontext
from datetime import datetime
from typing import Any, Generic, Hashable, Mapping, Optional, Sequence, Union

from ..common.datetime_utils import now_local
from ..common.locks import KeyedLocks
from ..core.constants import DEFAULT_TIMEZONE
from ..core.enums import Decision
from ..core.exceptions import AlreadyDecided, DomainError, Forbidden, NotFound, ValidationFailure
from ..core.principal import Principal
from ..database.connection import TransactionManager
from .model import ApprovalDecision, ApproverRule, DecisionResult, R

logger = logging.getLogger(__name__)


class ApprovalKind(ABC, Generic[R]):
    """Template Method: the per-kind hooks the workflow engine calls."""

    name: str = "request"
    approved_label: str = "Approved"
    rejected_label: str = "Rejected"
    in_review_label: Optional[str] = None
    reject_requires_reason: bool = False

    @abstractmethod
    def load(self, request_id: int) -> Optional[R]:
        raise NotImplementedError

    @abstractmethod
    def status_of(self, request: R) -> str:
        raise NotImplementedError

    @abstractmethod
    def approver_chain(self, request: R) -> Sequence[ApproverRule[R]]:
        raise NotImplementedError

    @abstractmethod
    def decisions_of(self, request: R) -> Sequence[ApprovalDecision]:
        raise NotImplementedError

    @abstractmethod
    def record(self, request: R, decision: ApprovalDecision, new_status: str) -> None:
        """Persist the decision and move the request to ``new_status``.

        Must raise ConcurrentModification if the request left its current
        status in the meantime.
        """

        raise NotImplementedError

    @abstractmethod
    def apply(self, request: R, decision: ApprovalDecision, details: Mapping[str, Any]) -> None:
        """Domain effect of the final approval. Raise to abort the decision."""

        raise NotImplementedError

    def lock_key(self, request: R) -> Optional[Hashable]:
        return None

    def is_terminal(self, request: R) -> bool:
        return self.status_of(request) in {self.approved_label, self.rejected_label}


class ApprovalWorkflow(Generic[R]):
    def __init__(
        self,
        kind: ApprovalKind[R],
        *,
        transactions: TransactionManager,
        locks: KeyedLocks,
        timezone: str = DEFAULT_TIMEZONE,
    ):
        self._kind = kind
        self._transactions = transactions
        self._locks = locks
        self._timezone = timezone

    @property
    def kind(self) -> ApprovalKind[R]:
        return self._kind

    def _load(self, request_id: int) -> R:
        request = self._kind.load(int(request_id))
        if request is None:
            raise NotFound(f"{self._kind.name} {request_id} not found")
        return request

    def decide(
        self,
        request_id: int,
        approver: Principal,
        decision: Union[Decision, str],
        notes: Optional[str] = "",
        *,
        now: datetime | None = None,
        **details: Any,
    ) -> DecisionResult:
        kind = self._kind
        try:
            decision = Decision(decision)
        except ValueError:
            raise ValidationFailure(f"Unknown decision {decision!r}")
        notes = (notes or "").strip() or None

        try:
            key = kind.lock_key(self._load(request_id))
            with self._locks.hold(key) if key is not None else nullcontext():
                with self._transactions.atomic():
                    # Re-read under the lock so a concurrent decision is seen.
                    request = self._load(request_id)
                    if kind.is_terminal(request):
                        raise AlreadyDecided(f"This {kind.name} has already been decided")

                    chain = kind.approver_chain(request)
                    step = sum(1 for d in kind.decisions_of(request) if d.approved)
                    if step >= len(chain):
                        raise AlreadyDecided(f"This {kind.name} has no pending approver")
                    rule = chain[step]
                    if not rule.allows(approver, request):
                        raise Forbidden(f"You are not allowed to decide this {kind.name} ({rule.label})")

                    if decision == Decision.REJECTED and kind.reject_requires_reason and not notes:
                        raise ValidationFailure("A reason is required when rejecting")

                    record = ApprovalDecision(
                        approver_id=approver.user_id,
                        decision=decision,
                        decided_at=now or now_local(self._timezone),
                        notes=notes,
                        step=step,
                    )
                    final = decision == Decision.REJECTED or step == len(chain) - 1
                    if decision == Decision.REJECTED:
                        new_status = kind.rejected_label
                    elif final:
                        kind.apply(request, record, details)
                        new_status = kind.approved_label
                    else:
                        new_status = kind.in_review_label or kind.status_of(request)

                    kind.record(request, record, new_status)
        except DomainError as e:
            logger.info("%s %s decision rejected kind=%s: %s", kind.name, request_id, e.kind, e.reason)
            raise

        logger.info(
            "%s %s %s by user=%s step=%s -> %s",
            kind.name,
            request_id,
            decision.value,
            approver.user_id,
            record.step,
            new_status,
        )
        return DecisionResult(kind=kind.name, request_id=int(request_id), status=new_status, decision=record, final=final)
