from __future__ import annotations

from flask import Flask

from ..common.web import current_principal, get_datetime, get_text, json_body, login_required, ok
from ..core.exceptions import ValidationFailure
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.leave_service

    @app.route("/api/leave-permits", methods=["POST"], endpoint="leave_permit_create")
    @login_required
    def leave_permit_create():
        data = json_body()
        members = data.get("member_ids") or []
        if not isinstance(members, list):
            raise ValidationFailure("member_ids must be a list")
        try:
            member_ids = [int(m) for m in members]
        except (TypeError, ValueError):
            raise ValidationFailure("member_ids must be user ids")

        permit = service.create_leave_permit(
            current_principal(),
            str(data.get("leave_type") or "Individual"),
            get_text(data, "reason") or "",
            get_datetime(data, "start_time"),
            get_datetime(data, "estimated_return", required=False),
            member_ids,
            requester_type=get_text(data, "requester_type"),
        )
        return ok(permit, 201, message="Leave permit submitted")

    @app.route("/api/leave-permits/mine", methods=["GET"], endpoint="leave_permit_mine")
    @login_required
    def leave_permit_mine():
        return ok(service.list_for_requester(current_principal()))

    @app.route("/api/leave-permits/awaiting", methods=["GET"], endpoint="leave_permit_awaiting")
    @login_required
    def leave_permit_awaiting():
        return ok(service.list_awaiting(current_principal()))

    @app.route("/api/leave-permits/<int:permit_id>", methods=["GET"], endpoint="leave_permit_detail")
    @login_required
    def leave_permit_detail(permit_id: int):
        return ok(service.get_permit(permit_id, current_principal()))

    @app.route("/api/leave-permits/<int:permit_id>/review", methods=["POST"], endpoint="leave_permit_review")
    @login_required
    def leave_permit_review(permit_id: int):
        data = json_body()
        result = service.start_review(permit_id, current_principal(), get_text(data, "notes"))
        return ok(result, message="Permit is under review")

    @app.route("/api/leave-permits/<int:permit_id>/decision", methods=["POST"], endpoint="leave_permit_decide")
    @login_required
    def leave_permit_decide(permit_id: int):
        data = json_body()
        result = service.decide_leave_permit(
            permit_id,
            current_principal(),
            str(data.get("decision") or ""),
            get_text(data, "notes"),
            confirmed_return=get_datetime(data, "confirmed_return", required=False),
        )
        return ok(result)

    @app.route("/api/leave-permits/<int:permit_id>/complete", methods=["POST"], endpoint="leave_permit_complete")
    @login_required
    def leave_permit_complete(permit_id: int):
        data = json_body()
        permit = service.complete_leave_permit(
            permit_id,
            current_principal(),
            get_text(data, "notes"),
            returned_at=get_datetime(data, "returned_at", required=False),
        )
        return ok(permit, message="Return recorded")
