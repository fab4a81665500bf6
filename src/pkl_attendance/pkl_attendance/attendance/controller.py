from __future__ import annotations

from typing import Optional

from flask import Flask, request

from ..common.web import current_principal, get_float, get_text, json_body, login_required, ok, to_json
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import SessionStatus
from ..core.exceptions import ValidationFailure
from ..container import Container
from .model import AttendanceSession


def session_json(s: Optional[AttendanceSession]):
    if s is None:
        return None
    data = to_json(s)
    data["total_hours"] = s.total_hours
    return data


def register(app: Flask, container: Container) -> None:
    def tap_event_id(data) -> Optional[str]:
        value = data.get("tap_event_id") or request.headers.get("X-Tap-Event-Id")
        return str(value)[:64] if value else None

    @app.route("/api/assignments/<int:assignment_id>/tap-in", methods=["POST"], endpoint="tap_in")
    @login_required
    def tap_in(assignment_id: int):
        data = json_body()
        stored = container.tap_service.tap_in(
            assignment_id,
            current_principal(),
            get_float(data, "lat"),
            get_float(data, "lng"),
            get_text(data, "photo_url") or None,
            tap_event_id=tap_event_id(data),
        )
        return ok(session_json(stored), 201, message="Tap-in recorded")

    @app.route("/api/assignments/<int:assignment_id>/tap-out", methods=["POST"], endpoint="tap_out")
    @login_required
    def tap_out(assignment_id: int):
        data = json_body()
        stored = container.tap_service.tap_out(
            assignment_id,
            current_principal(),
            get_float(data, "lat", required=False),
            get_float(data, "lng", required=False),
            tap_event_id=tap_event_id(data),
        )
        return ok(session_json(stored), message="Tap-out recorded")

    @app.route("/api/assignments/<int:assignment_id>/attendance/today", methods=["GET"], endpoint="attendance_today")
    @login_required
    def attendance_today(assignment_id: int):
        return ok(session_json(container.tap_service.get_today(assignment_id, current_principal())))

    @app.route("/api/assignments/<int:assignment_id>/attendance/history", methods=["GET"], endpoint="attendance_history")
    @login_required
    def attendance_history(assignment_id: int):
        raw_status = request.args.get("status")
        try:
            status = SessionStatus(raw_status) if raw_status else None
        except ValueError:
            raise ValidationFailure(f"Unknown status {raw_status!r}")
        page = request.args.get("page", 1, type=int)
        limit = request.args.get("limit", DEFAULT_HISTORY_LIMIT, type=int)
        items = container.tap_service.get_history(
            assignment_id, current_principal(), page=page, limit=limit, status=status
        )
        return ok([session_json(s) for s in items], page=page)

    @app.route("/api/assignments/<int:assignment_id>/attendance/stats", methods=["GET"], endpoint="attendance_stats")
    @login_required
    def attendance_stats(assignment_id: int):
        stats = container.tap_service.get_stats(assignment_id, current_principal())
        data = to_json(stats)
        data["attendance_rate"] = stats.attendance_rate
        return ok(data)
