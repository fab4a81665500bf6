from __future__ import annotations

from typing import Protocol, Sequence

from .model import ApprovalDecision


class DecisionRepository(Protocol):
    def list_for(self, *, request_kind: str, request_id: int) -> Sequence[ApprovalDecision]:
        """Decisions ordered by step."""

        raise NotImplementedError

    def add(self, *, request_kind: str, request_id: int, decision: ApprovalDecision) -> None:
        raise NotImplementedError
