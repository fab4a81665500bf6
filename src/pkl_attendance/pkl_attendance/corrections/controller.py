from __future__ import annotations

from datetime import datetime

from flask import Flask

from ..common.datetime_utils import parse_hhmm, parse_iso_date
from ..common.web import current_principal, get_text, json_body, login_required, ok
from ..core.exceptions import ValidationFailure
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.correction_service

    @app.route("/api/assignments/<int:assignment_id>/manual-requests", methods=["POST"], endpoint="manual_request_create")
    @login_required
    def manual_request_create(assignment_id: int):
        data = json_body()
        try:
            work_date = parse_iso_date(str(data.get("date", "")))
            tap_in = datetime.combine(work_date, parse_hhmm(str(data.get("tap_in", ""))))
            tap_out = datetime.combine(work_date, parse_hhmm(str(data.get("tap_out", ""))))
        except ValueError:
            raise ValidationFailure("date must be YYYY-MM-DD and tap_in/tap_out must be HH:MM")
        evidence = data.get("evidence_urls") or []
        if not isinstance(evidence, list):
            raise ValidationFailure("evidence_urls must be a list")

        created = service.request_manual_correction(
            assignment_id,
            current_principal(),
            work_date,
            tap_in,
            tap_out,
            get_text(data, "justification") or "",
            [str(u) for u in evidence],
            get_text(data, "witness_name"),
        )
        return ok(created, 201, message="Manual attendance request submitted")

    @app.route("/api/manual-requests/mine", methods=["GET"], endpoint="manual_request_mine")
    @login_required
    def manual_request_mine():
        return ok(service.list_mine(current_principal()))

    @app.route("/api/manual-requests/pending", methods=["GET"], endpoint="manual_request_pending")
    @login_required
    def manual_request_pending():
        return ok(service.list_pending_for_supervisor(current_principal()))

    @app.route("/api/manual-requests/<int:request_id>", methods=["GET"], endpoint="manual_request_detail")
    @login_required
    def manual_request_detail(request_id: int):
        return ok(service.get_request(request_id, current_principal()))

    @app.route("/api/manual-requests/<int:request_id>/decision", methods=["POST"], endpoint="manual_request_decide")
    @login_required
    def manual_request_decide(request_id: int):
        data = json_body()
        result = service.decide_manual_correction(
            request_id,
            current_principal(),
            str(data.get("decision") or ""),
            get_text(data, "notes"),
        )
        return ok(result, message=f"Request {result.status.lower()}")
