from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .common.datetime_utils import parse_hhmm
from .common.web import register_error_handlers
from .container import Container, build_container
from .core.logging import configure_logging
from .database.bootstrap import apply_schema, list_tables

from .attendance.controller import register as register_attendance
from .corrections.controller import register as register_corrections
from .leave.controller import register as register_leave
from .reconciliation.controller import register as register_reconciliation

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.config["TIMEZONE"] = getattr(settings, "TIMEZONE")
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"), debug=app.config["DEBUG"])

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
            apply_schema(db_config, schema_path=schema_path)
            logger.info("schema ready (tables=%s)", len(list_tables(db_config)))

        container = build_container(
            db_config=db_config,
            timezone=getattr(settings, "TIMEZONE"),
            default_radius=int(getattr(settings, "DEFAULT_RADIUS_METERS")),
            grace_minutes=int(getattr(settings, "TAP_IN_GRACE_MINUTES")),
            cutoff=parse_hhmm(getattr(settings, "RECONCILIATION_CUTOFF")),
            lock_timeout=float(getattr(settings, "LOCK_TIMEOUT_SECONDS")),
            max_manual_requests=int(getattr(settings, "MAX_MANUAL_REQUESTS_PER_MONTH")),
            min_justification_length=int(getattr(settings, "MIN_JUSTIFICATION_LENGTH")),
            min_leave_reason_length=int(getattr(settings, "MIN_LEAVE_REASON_LENGTH")),
        )

    register_error_handlers(app)
    register_attendance(app, container)
    register_corrections(app, container)
    register_leave(app, container)
    register_reconciliation(app, container)

    return app
