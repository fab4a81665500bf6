from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Optional

from .assignments.mysql_assignment_repository import MySQLAssignmentRepository
from .attendance.factory import TapStrategyFactory
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.service import TapService
from .common.locks import KeyedLocks
from .core.constants import (
    DEFAULT_GRACE_PERIOD_MINUTES,
    DEFAULT_LOCK_TIMEOUT_SECONDS,
    DEFAULT_RADIUS_METERS,
    DEFAULT_RECONCILIATION_CUTOFF,
    DEFAULT_TIMEZONE,
    MAX_MANUAL_REQUESTS_PER_MONTH,
    MIN_JUSTIFICATION_LENGTH,
    MIN_LEAVE_REASON_LENGTH,
)
from .corrections.mysql_manual_request_repository import MySQLManualRequestRepository
from .corrections.service import CorrectionService
from .database.connection import DBConfig, DatabaseConnection
from .holidays.mysql_holiday_calendar import MySQLHolidayCalendar
from .leave.mysql_leave_repository import MySQLLeavePermitRepository
from .leave.service import LeaveService
from .reconciliation.runner import ReconciliationRunner
from .reconciliation.service import ReconciliationJob
from .workflow.mysql_decision_repository import MySQLDecisionRepository


@dataclass(frozen=True)
class Container:
    tap_service: TapService
    correction_service: CorrectionService
    leave_service: LeaveService
    reconciliation_job: ReconciliationJob
    reconciliation_runner: ReconciliationRunner
    conn: Optional[DatabaseConnection] = None


def build_container(
    *,
    db_config: dict,
    timezone: str = DEFAULT_TIMEZONE,
    default_radius: int = DEFAULT_RADIUS_METERS,
    grace_minutes: int = DEFAULT_GRACE_PERIOD_MINUTES,
    cutoff: time = DEFAULT_RECONCILIATION_CUTOFF,
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    max_manual_requests: int = MAX_MANUAL_REQUESTS_PER_MONTH,
    min_justification_length: int = MIN_JUSTIFICATION_LENGTH,
    min_leave_reason_length: int = MIN_LEAVE_REASON_LENGTH,
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
        connect_timeout=int(db_config.get("connect_timeout", 10)),
    )
    conn = DatabaseConnection.get_instance(config)
    locks = KeyedLocks(timeout=lock_timeout)

    assignments_repo = MySQLAssignmentRepository(conn, default_radius=default_radius)
    attendance_repo = MySQLAttendanceRepository(conn)
    manual_repo = MySQLManualRequestRepository(conn)
    leave_repo = MySQLLeavePermitRepository(conn)
    decisions_repo = MySQLDecisionRepository(conn)
    holidays = MySQLHolidayCalendar(conn)

    correction_service = CorrectionService(
        manual_repo,
        decisions_repo,
        attendance_repo,
        assignments_repo,
        transactions=conn,
        locks=locks,
        timezone=timezone,
        max_per_month=max_manual_requests,
        min_justification_length=min_justification_length,
    )
    tap_service = TapService(
        attendance_repo,
        assignments_repo,
        locks=locks,
        strategy_factory=TapStrategyFactory(),
        grace_minutes=grace_minutes,
        timezone=timezone,
        pending_requests=correction_service,
    )
    leave_service = LeaveService(
        leave_repo,
        decisions_repo,
        transactions=conn,
        locks=locks,
        timezone=timezone,
        min_reason_length=min_leave_reason_length,
    )
    reconciliation_job = ReconciliationJob(attendance_repo, assignments_repo, holidays, locks=locks, cutoff=cutoff)

    return Container(
        tap_service=tap_service,
        correction_service=correction_service,
        leave_service=leave_service,
        reconciliation_job=reconciliation_job,
        reconciliation_runner=ReconciliationRunner(reconciliation_job, timezone=timezone),
        conn=conn,
    )
