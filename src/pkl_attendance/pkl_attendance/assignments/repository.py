from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import Assignment


class AssignmentRepository(Protocol):
    def get_by_id(self, assignment_id: int) -> Optional[Assignment]:
        raise NotImplementedError

    def list_active_on(self, work_date: date) -> Sequence[Assignment]:
        """Assignments with status Active whose date range covers work_date."""

        raise NotImplementedError
