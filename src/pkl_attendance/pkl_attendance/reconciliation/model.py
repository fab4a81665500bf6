from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List


@dataclass(frozen=True)
class ReconciliationFailure:
    assignment_id: int
    kind: str
    reason: str


@dataclass
class ReconciliationReport:
    """Outcome of one sweep; ids are session ids."""

    work_date: date
    processed: int = 0
    skipped: int = 0
    auto_closed: List[int] = field(default_factory=list)
    absent: List[int] = field(default_factory=list)
    failures: List[ReconciliationFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "work_date": self.work_date.isoformat(),
            "processed": self.processed,
            "skipped": self.skipped,
            "auto_closed": list(self.auto_closed),
            "absent": list(self.absent),
            "failures": [
                {"assignment_id": f.assignment_id, "kind": f.kind, "reason": f.reason} for f in self.failures
            ],
        }
