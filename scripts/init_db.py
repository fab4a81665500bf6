"""Create or upgrade the PKL attendance tables.

    python scripts/init_db.py --env testing
"""

from __future__ import annotations

import importlib
import os
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module  # noqa: E402

from src.pkl_attendance.pkl_attendance.database.bootstrap import apply_schema, list_tables  # noqa: E402

REQUIRED_TABLES = (
    "pkl_assignments",
    "pkl_allowed_locations",
    "pkl_attendance_sessions",
    "pkl_manual_requests",
    "leave_permits",
    "leave_permit_members",
    "approval_decisions",
    "holidays",
)


@click.command()
@click.option("--env", "app_env", default=None, help="Overrides APP_ENV (development, testing, production).")
def main(app_env: str | None) -> None:
    load_dotenv(REPO_ROOT / ".env", override=False)
    if app_env:
        os.environ["APP_ENV"] = app_env
    db_config = dict(importlib.import_module(get_settings_module()).DB_CONFIG)

    apply_schema(db_config, schema_path=REPO_ROOT / "database" / "schema.sql")

    missing = sorted(set(REQUIRED_TABLES) - set(list_tables(db_config)))
    if missing:
        raise click.ClickException(f"schema applied but tables are missing: {', '.join(missing)}")
    click.echo(f"{db_config.get('database')}: {len(REQUIRED_TABLES)} PKL tables ready")


if __name__ == "__main__":
    main()
