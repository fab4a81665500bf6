from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Generic, Optional, TypeVar

from ..core.enums import Decision, Role
from ..core.principal import Principal

R = TypeVar("R")


@dataclass(frozen=True)
class ApprovalDecision:
    """One approver's decision on a workflow instance."""

    approver_id: int
    decision: Decision
    decided_at: datetime
    notes: Optional[str] = None
    step: int = 0

    @property
    def approved(self) -> bool:
        return self.decision == Decision.APPROVED


@dataclass(frozen=True)
class ApproverRule(Generic[R]):
    """Who may decide one step of an approval chain."""

    label: str
    predicate: Callable[[Principal, R], bool]

    def allows(self, principal: Principal, request: R) -> bool:
        return bool(self.predicate(principal, request))


def any_role(*roles: Role) -> Callable[[Principal, object], bool]:
    def check(principal: Principal, _request: object) -> bool:
        return principal.has_role(*roles)

    return check


@dataclass(frozen=True)
class DecisionResult:
    kind: str
    request_id: int
    status: str
    decision: ApprovalDecision
    final: bool
