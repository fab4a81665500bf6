from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, Optional, Sequence

from ..core.enums import ApprovalStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import ManualAttendanceRequest, NewManualRequest
from .repository import ManualRequestRepository

_COLUMNS = """
    mr.request_id, mr.session_id, mr.assignment_id, mr.requester_user_id, mr.work_date,
    mr.claimed_tap_in, mr.claimed_tap_out, mr.justification, mr.evidence_urls,
    mr.witness_name, mr.status, mr.created_at
"""


def _to_model(r: Dict[str, Any]) -> ManualAttendanceRequest:
    evidence = r.get("evidence_urls")
    if isinstance(evidence, (bytes, str)):
        evidence = json.loads(evidence)
    return ManualAttendanceRequest(
        request_id=int(r["request_id"]),
        session_id=int(r["session_id"]),
        assignment_id=int(r["assignment_id"]),
        requester_id=int(r["requester_user_id"]),
        work_date=r["work_date"],
        claimed_tap_in=r["claimed_tap_in"],
        claimed_tap_out=r["claimed_tap_out"],
        justification=r["justification"],
        status=ApprovalStatus(r["status"]),
        created_at=r["created_at"],
        evidence_urls=tuple(evidence or ()),
        witness_name=r.get("witness_name"),
    )


class MySQLManualRequestRepository(ManualRequestRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, data: NewManualRequest) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO pkl_manual_requests(
                    session_id, assignment_id, requester_user_id, work_date,
                    claimed_tap_in, claimed_tap_out, justification, evidence_urls, witness_name, status
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(data.session_id),
                    int(data.assignment_id),
                    int(data.requester_id),
                    data.work_date,
                    data.claimed_tap_in,
                    data.claimed_tap_out,
                    data.justification,
                    json.dumps(list(data.evidence_urls)),
                    data.witness_name,
                    ApprovalStatus.PENDING.value,
                ),
            )
            return int(cur.lastrowid)

    def get(self, request_id: int) -> Optional[ManualAttendanceRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM pkl_manual_requests mr WHERE mr.request_id=%s", (int(request_id),))
            r = fetchone(cur)
            return _to_model(r) if r else None

    def has_pending_for_session(self, session_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT 1 AS x FROM pkl_manual_requests WHERE session_id=%s AND status=%s LIMIT 1",
                (int(session_id), ApprovalStatus.PENDING.value),
            )
            return fetchone(cur) is not None

    def count_for_assignment_between(self, assignment_id: int, *, start: date, end: date) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS n FROM pkl_manual_requests
                WHERE assignment_id=%s AND work_date >= %s AND work_date < %s
                """,
                (int(assignment_id), start, end),
            )
            return int(fetchone(cur)["n"])

    def count_pending_for_assignment(self, assignment_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT COUNT(*) AS n FROM pkl_manual_requests WHERE assignment_id=%s AND status=%s",
                (int(assignment_id), ApprovalStatus.PENDING.value),
            )
            return int(fetchone(cur)["n"])

    def set_status(self, request_id: int, *, expected: ApprovalStatus, status: ApprovalStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE pkl_manual_requests SET status=%s WHERE request_id=%s AND status=%s",
                (status.value, int(request_id), expected.value),
            )
            return cur.rowcount > 0

    def list_pending_for_supervisor(self, supervisor_id: int, *, limit: int = 200) -> Sequence[ManualAttendanceRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM pkl_manual_requests mr
                JOIN pkl_assignments a ON a.assignment_id = mr.assignment_id
                WHERE a.supervisor_user_id=%s AND mr.status=%s
                ORDER BY mr.created_at DESC
                LIMIT %s
                """,
                (int(supervisor_id), ApprovalStatus.PENDING.value, int(limit)),
            )
            return [_to_model(r) for r in fetchall(cur)]

    def list_for_requester(self, requester_id: int, *, limit: int = 200) -> Sequence[ManualAttendanceRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM pkl_manual_requests mr
                WHERE mr.requester_user_id=%s
                ORDER BY mr.created_at DESC
                LIMIT %s
                """,
                (int(requester_id), int(limit)),
            )
            return [_to_model(r) for r in fetchall(cur)]
