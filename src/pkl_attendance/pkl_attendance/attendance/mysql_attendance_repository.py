from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any, Dict, Mapping, Optional, Sequence

import mysql.connector

from ..core.enums import SessionStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key
from .model import AttendanceSession
from .repository import AttendanceRepository

_COLUMNS = """
    session_id, assignment_id, work_date, status,
    tap_in_time, tap_in_lat, tap_in_lng, tap_in_photo, tap_in_distance_m, tap_in_event_id,
    tap_out_time, tap_out_lat, tap_out_lng, tap_out_within_radius, tap_out_event_id,
    closed_by_reconciliation, version
"""


def _opt_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


def _to_model(r: Dict[str, Any]) -> AttendanceSession:
    within = r.get("tap_out_within_radius")
    return AttendanceSession(
        session_id=int(r["session_id"]),
        assignment_id=int(r["assignment_id"]),
        work_date=r["work_date"],
        status=SessionStatus(r["status"]),
        tap_in_time=r.get("tap_in_time"),
        tap_in_lat=_opt_float(r.get("tap_in_lat")),
        tap_in_lng=_opt_float(r.get("tap_in_lng")),
        tap_in_photo=r.get("tap_in_photo"),
        tap_in_distance_m=int(r["tap_in_distance_m"]) if r.get("tap_in_distance_m") is not None else None,
        tap_in_event_id=r.get("tap_in_event_id"),
        tap_out_time=r.get("tap_out_time"),
        tap_out_lat=_opt_float(r.get("tap_out_lat")),
        tap_out_lng=_opt_float(r.get("tap_out_lng")),
        tap_out_within_radius=bool(within) if within is not None else None,
        tap_out_event_id=r.get("tap_out_event_id"),
        closed_by_reconciliation=bool(r.get("closed_by_reconciliation")),
        version=int(r.get("version") or 0),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM pkl_attendance_sessions WHERE session_id=%s", (int(session_id),))
            r = fetchone(cur)
            return _to_model(r) if r else None

    def get_for_assignment_and_date(self, assignment_id: int, work_date: date) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM pkl_attendance_sessions
                WHERE assignment_id=%s AND work_date=%s
                """,
                (int(assignment_id), work_date),
            )
            r = fetchone(cur)
            return _to_model(r) if r else None

    def list_for_assignment(
        self,
        assignment_id: int,
        *,
        limit: int,
        offset: int = 0,
        status: Optional[SessionStatus] = None,
    ) -> Sequence[AttendanceSession]:
        clauses = ["assignment_id=%s"]
        params: list[object] = [int(assignment_id)]
        if status is not None:
            clauses.append("status=%s")
            params.append(status.value)
        params.extend([int(limit), int(offset)])

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM pkl_attendance_sessions
                WHERE {" AND ".join(clauses)}
                ORDER BY work_date DESC
                LIMIT %s OFFSET %s
                """,
                tuple(params),
            )
            return [_to_model(r) for r in fetchall(cur)]

    def create(self, session: AttendanceSession) -> Optional[AttendanceSession]:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO pkl_attendance_sessions(
                        assignment_id, work_date, status,
                        tap_in_time, tap_in_lat, tap_in_lng, tap_in_photo, tap_in_distance_m, tap_in_event_id,
                        total_hours, closed_by_reconciliation, version
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,0)
                    """,
                    (
                        session.assignment_id,
                        session.work_date,
                        session.status.value,
                        session.tap_in_time,
                        session.tap_in_lat,
                        session.tap_in_lng,
                        session.tap_in_photo,
                        session.tap_in_distance_m,
                        session.tap_in_event_id,
                        session.total_hours,
                        int(session.closed_by_reconciliation),
                    ),
                )
                new_id = int(cur.lastrowid)
        except mysql.connector.IntegrityError as e:
            if is_duplicate_key(e):
                return None
            raise
        return replace(session, session_id=new_id, version=0)

    def update(self, session: AttendanceSession) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE pkl_attendance_sessions
                SET status=%s,
                    tap_in_time=%s,
                    tap_out_time=%s, tap_out_lat=%s, tap_out_lng=%s,
                    tap_out_within_radius=%s, tap_out_event_id=%s,
                    total_hours=%s, closed_by_reconciliation=%s,
                    version=version + 1
                WHERE session_id=%s AND version=%s
                """,
                (
                    session.status.value,
                    session.tap_in_time,
                    session.tap_out_time,
                    session.tap_out_lat,
                    session.tap_out_lng,
                    None if session.tap_out_within_radius is None else int(session.tap_out_within_radius),
                    session.tap_out_event_id,
                    session.total_hours,
                    int(session.closed_by_reconciliation),
                    int(session.session_id),
                    int(session.version),
                ),
            )
            if cur.rowcount <= 0:
                return None
        return replace(session, version=session.version + 1)

    def status_counts(self, assignment_id: int) -> Mapping[SessionStatus, int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT status, COUNT(*) AS n
                FROM pkl_attendance_sessions
                WHERE assignment_id=%s
                GROUP BY status
                """,
                (int(assignment_id),),
            )
            return {SessionStatus(r["status"]): int(r["n"]) for r in fetchall(cur)}

    def sum_hours(self, assignment_id: int) -> float:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT COALESCE(SUM(total_hours), 0) AS hours FROM pkl_attendance_sessions WHERE assignment_id=%s",
                (int(assignment_id),),
            )
            r = fetchone(cur)
            return float(r["hours"]) if r else 0.0
