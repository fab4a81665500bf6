from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..core.enums import ApprovalStatus, LeavePermitStatus, LeaveType, RequesterType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import LeaveMember, LeavePermit, NewLeavePermit
from .repository import LeavePermitRepository

_COLUMNS = """
    lp.permit_id, lp.requester_user_id, lp.requester_type, lp.leave_type, lp.reason,
    lp.start_time, lp.estimated_return, lp.status, lp.confirmed_return,
    lp.returned_at, lp.completion_notes, lp.created_at
"""


def _to_model(r: Dict[str, Any], members: Sequence[LeaveMember]) -> LeavePermit:
    return LeavePermit(
        permit_id=int(r["permit_id"]),
        requester_id=int(r["requester_user_id"]),
        requester_type=RequesterType(r["requester_type"]),
        leave_type=LeaveType(r["leave_type"]),
        reason=r["reason"],
        start_time=r["start_time"],
        status=LeavePermitStatus(r["status"]),
        created_at=r["created_at"],
        estimated_return=r.get("estimated_return"),
        confirmed_return=r.get("confirmed_return"),
        returned_at=r.get("returned_at"),
        completion_notes=r.get("completion_notes"),
        members=tuple(members),
    )


class MySQLLeavePermitRepository(LeavePermitRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _members_by_permit(self, cur, permit_ids: Sequence[int]) -> Dict[int, List[LeaveMember]]:
        out: Dict[int, List[LeaveMember]] = {pid: [] for pid in permit_ids}
        if not permit_ids:
            return out
        placeholders = ",".join(["%s"] * len(permit_ids))
        cur.execute(
            f"""
            SELECT permit_id, user_id, status
            FROM leave_permit_members
            WHERE permit_id IN ({placeholders})
            ORDER BY permit_id, user_id
            """,
            tuple(int(p) for p in permit_ids),
        )
        for r in fetchall(cur):
            out[int(r["permit_id"])].append(LeaveMember(user_id=int(r["user_id"]), status=ApprovalStatus(r["status"])))
        return out

    def _hydrate(self, cur, rows: List[Dict[str, Any]]) -> List[LeavePermit]:
        members = self._members_by_permit(cur, [int(r["permit_id"]) for r in rows])
        return [_to_model(r, members[int(r["permit_id"])]) for r in rows]

    def create(self, data: NewLeavePermit) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO leave_permits(
                    requester_user_id, requester_type, leave_type, reason,
                    start_time, estimated_return, status
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(data.requester_id),
                    data.requester_type.value,
                    data.leave_type.value,
                    data.reason,
                    data.start_time,
                    data.estimated_return,
                    data.status.value,
                ),
            )
            permit_id = int(cur.lastrowid)
            cur.executemany(
                "INSERT INTO leave_permit_members(permit_id, user_id, status) VALUES(%s,%s,%s)",
                [(permit_id, int(uid), ApprovalStatus.PENDING.value) for uid in data.member_ids],
            )
            return permit_id

    def get(self, permit_id: int) -> Optional[LeavePermit]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM leave_permits lp WHERE lp.permit_id=%s", (int(permit_id),))
            r = fetchone(cur)
            if not r:
                return None
            return self._hydrate(cur, [r])[0]

    def set_status(self, permit_id: int, *, expected: LeavePermitStatus, status: LeavePermitStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE leave_permits SET status=%s WHERE permit_id=%s AND status=%s",
                (status.value, int(permit_id), expected.value),
            )
            return cur.rowcount > 0

    def mark_members(
        self,
        permit_id: int,
        user_ids: Sequence[int],
        *,
        status: ApprovalStatus,
        expected: ApprovalStatus = ApprovalStatus.PENDING,
    ) -> int:
        if not user_ids:
            return 0
        placeholders = ",".join(["%s"] * len(user_ids))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE leave_permit_members SET status=%s
                WHERE permit_id=%s AND status=%s AND user_id IN ({placeholders})
                """,
                (status.value, int(permit_id), expected.value, *[int(u) for u in user_ids]),
            )
            return int(cur.rowcount)

    def set_confirmed_return(self, permit_id: int, confirmed_return: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE leave_permits SET confirmed_return=%s WHERE permit_id=%s",
                (confirmed_return, int(permit_id)),
            )

    def complete(self, permit_id: int, *, returned_at: datetime, notes: Optional[str]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE leave_permits SET returned_at=%s, completion_notes=%s
                WHERE permit_id=%s AND status=%s AND returned_at IS NULL
                """,
                (returned_at, notes, int(permit_id), LeavePermitStatus.CLOSE.value),
            )
            return cur.rowcount > 0

    def list_for_user(self, user_id: int, *, limit: int = 200) -> Sequence[LeavePermit]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT DISTINCT {_COLUMNS}
                FROM leave_permits lp
                LEFT JOIN leave_permit_members m ON m.permit_id = lp.permit_id
                WHERE lp.requester_user_id=%s OR m.user_id=%s
                ORDER BY lp.created_at DESC
                LIMIT %s
                """,
                (int(user_id), int(user_id), int(limit)),
            )
            return self._hydrate(cur, fetchall(cur))

    def list_by_status(
        self,
        status: LeavePermitStatus,
        *,
        requester_type: Optional[RequesterType] = None,
        limit: int = 200,
    ) -> Sequence[LeavePermit]:
        where = ["lp.status=%s"]
        params: list[Any] = [status.value]
        if requester_type is not None:
            where.append("lp.requester_type=%s")
            params.append(requester_type.value)
        params.append(int(limit))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM leave_permits lp
                WHERE {' AND '.join(where)}
                ORDER BY lp.created_at ASC
                LIMIT %s
                """,
                tuple(params),
            )
            return self._hydrate(cur, fetchall(cur))
