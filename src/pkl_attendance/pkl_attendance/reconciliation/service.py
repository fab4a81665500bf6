"""End-of-day sweep over attendance sessions.

For every assignment active on the given date: an InProgress session is
auto-closed at the cutoff, a missing session on a working day becomes
Absent, anything else is left alone. Re-running on the same date changes
nothing.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Optional

from ..assignments.model import Assignment
from ..assignments.repository import AssignmentRepository
from ..attendance.model import AttendanceSession
from ..attendance.repository import AttendanceRepository
from ..attendance.service import session_key
from ..common.locks import KeyedLocks
from ..core.constants import DEFAULT_RECONCILIATION_CUTOFF
from ..core.exceptions import ConcurrentModification, DomainError
from ..holidays.repository import HolidayCalendar
from .model import ReconciliationFailure, ReconciliationReport

logger = logging.getLogger(__name__)


class ReconciliationJob:
    def __init__(
        self,
        attendance: AttendanceRepository,
        assignments: AssignmentRepository,
        holidays: HolidayCalendar,
        *,
        locks: KeyedLocks,
        cutoff: time = DEFAULT_RECONCILIATION_CUTOFF,
    ):
        self._attendance = attendance
        self._assignments = assignments
        self._holidays = holidays
        self._locks = locks
        self._cutoff = cutoff

    def run(self, on_date: date, *, cutoff: Optional[time] = None) -> ReconciliationReport:
        closing_time = datetime.combine(on_date, cutoff or self._cutoff)
        report = ReconciliationReport(work_date=on_date)
        assignments = self._assignments.list_active_on(on_date)
        logger.info("reconciliation started date=%s assignments=%s", on_date, len(assignments))

        holiday: Optional[bool] = None
        for assignment in assignments:
            try:
                if holiday is None:
                    holiday = bool(self._holidays.is_holiday(on_date))
                self._reconcile_one(assignment, on_date, closing_time, holiday, report)
                report.processed += 1
            except Exception as e:
                kind = e.kind if isinstance(e, DomainError) else type(e).__name__
                logger.exception("reconciliation failed assignment=%s date=%s", assignment.assignment_id, on_date)
                report.failures.append(ReconciliationFailure(assignment.assignment_id, kind, str(e)))

        logger.info(
            "reconciliation finished date=%s processed=%s auto_closed=%s absent=%s skipped=%s failures=%s",
            on_date,
            report.processed,
            len(report.auto_closed),
            len(report.absent),
            report.skipped,
            len(report.failures),
        )
        return report

    def _reconcile_one(
        self,
        assignment: Assignment,
        on_date: date,
        closing_time: datetime,
        holiday: bool,
        report: ReconciliationReport,
    ) -> None:
        with self._locks.hold(session_key(assignment.assignment_id, on_date)):
            session = self._attendance.get_for_assignment_and_date(assignment.assignment_id, on_date)

            if session is None:
                if holiday or not assignment.is_work_day(on_date):
                    report.skipped += 1
                    return
                created = self._attendance.create(
                    AttendanceSession.absent(assignment_id=assignment.assignment_id, work_date=on_date)
                )
                if created is None:
                    raise ConcurrentModification("A session appeared while marking absent; rerun to settle it")
                report.absent.append(created.session_id)
                return

            if not session.is_open:
                report.skipped += 1
                return

            stored = self._attendance.update(session.auto_close(cutoff=closing_time))
            if stored is None:
                raise ConcurrentModification(f"Session {session.session_id} changed during reconciliation")
            report.auto_closed.append(stored.session_id)
