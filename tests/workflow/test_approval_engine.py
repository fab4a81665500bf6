from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Tuple

import pytest

from src.pkl_attendance.pkl_attendance.common.locks import KeyedLocks
from src.pkl_attendance.pkl_attendance.core.enums import Decision, Role
from src.pkl_attendance.pkl_attendance.core.exceptions import AlreadyDecided, Forbidden, NotFound, ValidationFailure
from src.pkl_attendance.pkl_attendance.core.principal import Principal
from src.pkl_attendance.pkl_attendance.workflow.engine import ApprovalKind, ApprovalWorkflow
from src.pkl_attendance.pkl_attendance.workflow.model import ApprovalDecision, ApproverRule, any_role

from tests.fakes import SnapshotTransactions, _Store

NOW = datetime(2025, 3, 3, 10, 0)
CLERK = Principal.of(2, [Role.PIKET])
HEAD = Principal.of(3, [Role.KEPALA_SEKOLAH])


@dataclass(frozen=True)
class Expense:
    expense_id: int
    status: str = "Submitted"
    decisions: Tuple[ApprovalDecision, ...] = ()
    paid: bool = False


class ExpenseStore(_Store):
    _state = ("rows",)

    def __init__(self):
        self.rows: Dict[int, Expense] = {1: Expense(1)}
        self.fail_apply = False


class ExpenseKind(ApprovalKind[Expense]):
    """Two-step chain used to exercise the engine on its own."""

    name = "expense"
    approved_label = "Paid"
    rejected_label = "Refused"
    in_review_label = "Checked"
    reject_requires_reason = True

    def __init__(self, store: ExpenseStore):
        self.store = store

    def load(self, request_id):
        return self.store.rows.get(request_id)

    def status_of(self, request):
        return request.status

    def approver_chain(self, request):
        return [ApproverRule("clerk", any_role(Role.PIKET)), ApproverRule("head", any_role(Role.KEPALA_SEKOLAH))]

    def decisions_of(self, request):
        return request.decisions

    def record(self, request, decision, new_status):
        current = self.store.rows[request.expense_id]
        self.store.rows[request.expense_id] = replace(
            current, status=new_status, decisions=current.decisions + (decision,)
        )

    def apply(self, request, decision, details):
        self.store.rows[request.expense_id] = replace(self.store.rows[request.expense_id], paid=True)
        if self.store.fail_apply:
            raise RuntimeError("payment system down")


@pytest.fixture
def store():
    return ExpenseStore()


@pytest.fixture
def workflow(store):
    return ApprovalWorkflow(ExpenseKind(store), transactions=SnapshotTransactions(store), locks=KeyedLocks(timeout=1))


def test_chain_moves_through_review_then_final(workflow, store):
    first = workflow.decide(1, CLERK, Decision.APPROVED, now=NOW)
    assert first.status == "Checked"
    assert first.final is False
    assert store.rows[1].paid is False

    second = workflow.decide(1, HEAD, "Approved", "ok", now=NOW)
    assert second.status == "Paid"
    assert second.final is True
    assert second.decision.step == 1
    assert store.rows[1].paid is True


def test_wrong_approver_for_current_step(workflow):
    with pytest.raises(Forbidden):
        workflow.decide(1, HEAD, Decision.APPROVED, now=NOW)


def test_terminal_request_cannot_be_decided_again(workflow):
    workflow.decide(1, CLERK, Decision.REJECTED, "duplicate receipt", now=NOW)

    with pytest.raises(AlreadyDecided):
        workflow.decide(1, CLERK, Decision.APPROVED, now=NOW)


def test_rejection_needs_a_reason(workflow, store):
    with pytest.raises(ValidationFailure):
        workflow.decide(1, CLERK, Decision.REJECTED, "   ", now=NOW)
    assert store.rows[1].status == "Submitted"


def test_unknown_decision_value(workflow):
    with pytest.raises(ValidationFailure):
        workflow.decide(1, CLERK, "Maybe", now=NOW)


def test_missing_request(workflow):
    with pytest.raises(NotFound):
        workflow.decide(42, CLERK, Decision.APPROVED, now=NOW)


def test_failed_apply_leaves_request_untouched(workflow, store):
    workflow.decide(1, CLERK, Decision.APPROVED, now=NOW)
    store.fail_apply = True

    with pytest.raises(RuntimeError):
        workflow.decide(1, HEAD, Decision.APPROVED, now=NOW)

    assert store.rows[1].status == "Checked"
    assert store.rows[1].paid is False
    assert len(store.rows[1].decisions) == 1
