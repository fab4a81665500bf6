from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ..core.constants import DEFAULT_RADIUS_METERS
from ..core.enums import AssignmentStatus, PlacementType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, normalize_mysql_time
from .model import AllowedLocation, Assignment
from .repository import AssignmentRepository

_COLUMNS = """
    assignment_id, student_user_id, supervisor_user_id, site_name, site_lat, site_lng,
    radius_meters, work_start, work_end, start_date, end_date, status, placement_type,
    require_gps_validation, work_days
"""


def _parse_work_days(value: Any) -> frozenset:
    return frozenset(int(p) for p in str(value or "").split(",") if p.strip())


class MySQLAssignmentRepository(AssignmentRepository):
    def __init__(self, conn_factory: DatabaseConnection, *, default_radius: int = DEFAULT_RADIUS_METERS):
        self._conn_factory = conn_factory
        self._default_radius = int(default_radius)

    def _locations(self, cur, assignment_ids: List[int]) -> Dict[int, List[AllowedLocation]]:
        if not assignment_ids:
            return {}
        marks = ",".join(["%s"] * len(assignment_ids))
        cur.execute(
            f"""
            SELECT location_id, assignment_id, location_name, latitude, longitude, radius_meters
            FROM pkl_allowed_locations
            WHERE is_active=1 AND assignment_id IN ({marks})
            ORDER BY location_id
            """,
            tuple(assignment_ids),
        )
        out: Dict[int, List[AllowedLocation]] = {}
        for r in fetchall(cur):
            out.setdefault(int(r["assignment_id"]), []).append(
                AllowedLocation(
                    location_id=int(r["location_id"]),
                    name=r["location_name"],
                    lat=float(r["latitude"]),
                    lng=float(r["longitude"]),
                    radius_meters=int(r["radius_meters"]),
                )
            )
        return out

    def _to_model(self, r: Dict[str, Any], locations: List[AllowedLocation]) -> Assignment:
        return Assignment(
            assignment_id=int(r["assignment_id"]),
            student_id=int(r["student_user_id"]),
            supervisor_id=int(r["supervisor_user_id"]) if r.get("supervisor_user_id") is not None else None,
            site_name=r["site_name"],
            site_lat=float(r["site_lat"]),
            site_lng=float(r["site_lng"]),
            radius_meters=int(r["radius_meters"]) if r.get("radius_meters") is not None else self._default_radius,
            work_start=normalize_mysql_time(r["work_start"]),
            work_end=normalize_mysql_time(r["work_end"]),
            start_date=r["start_date"],
            end_date=r["end_date"],
            status=AssignmentStatus(r["status"]),
            placement_type=PlacementType(r["placement_type"]),
            require_gps_validation=bool(r["require_gps_validation"]),
            work_days=_parse_work_days(r.get("work_days")),
            allowed_locations=tuple(locations),
        )

    def get_by_id(self, assignment_id: int) -> Optional[Assignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM pkl_assignments WHERE assignment_id=%s", (int(assignment_id),))
            r = fetchone(cur)
            if not r:
                return None
            locations = self._locations(cur, [int(r["assignment_id"])])
            return self._to_model(r, locations.get(int(r["assignment_id"]), []))

    def list_active_on(self, work_date: date) -> Sequence[Assignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM pkl_assignments
                WHERE status=%s AND start_date <= %s AND end_date >= %s
                ORDER BY assignment_id
                """,
                (AssignmentStatus.ACTIVE.value, work_date, work_date),
            )
            rows = fetchall(cur)
            locations = self._locations(cur, [int(r["assignment_id"]) for r in rows])
            return [self._to_model(r, locations.get(int(r["assignment_id"]), [])) for r in rows]
