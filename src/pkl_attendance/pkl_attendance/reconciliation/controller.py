from __future__ import annotations

from datetime import date
from typing import Optional

import click
from flask import Flask, jsonify

from ..common.datetime_utils import parse_iso_date
from ..common.web import json_body, ok, roles_required
from ..core.enums import Role
from ..core.exceptions import ValidationFailure
from ..container import Container


def _parse_day(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationFailure("date must be YYYY-MM-DD")


def register(app: Flask, container: Container) -> None:
    runner = container.reconciliation_runner

    @app.route("/api/admin/reconciliation", methods=["POST"], endpoint="reconciliation_run")
    @roles_required(Role.ADMIN)
    def reconciliation_run():
        report = runner.trigger(_parse_day(json_body().get("date")))
        if report is None:
            return jsonify({"success": False, "error": "Busy", "message": "Reconciliation is already running"}), 409
        return ok(report.to_dict())

    @app.cli.command("reconcile")
    @click.option("--date", "day", default=None, help="Work date to reconcile (YYYY-MM-DD), defaults to today.")
    def reconcile_command(day: Optional[str]):
        """Close out unfinished attendance for one day."""
        report = runner.trigger(_parse_day(day))
        if report is None:
            click.echo("Reconciliation is already running; skipped.")
            return
        click.echo(
            f"{report.work_date.isoformat()}: processed={report.processed} "
            f"auto_closed={len(report.auto_closed)} absent={len(report.absent)} "
            f"skipped={report.skipped} failures={len(report.failures)}"
        )
        for f in report.failures:
            click.echo(f"  assignment {f.assignment_id}: {f.kind}: {f.reason}", err=True)
