"""Shared Flask plumbing for the JSON controllers."""

from __future__ import annotations

import logging
from dataclasses import fields, is_dataclass
from datetime import date, datetime, time
from enum import Enum
from functools import wraps
from typing import Any, Dict, Optional

from flask import Flask, current_app, jsonify, request, session
from werkzeug.exceptions import HTTPException

from .datetime_utils import to_local_naive
from ..core.constants import DEFAULT_TIMEZONE
from ..core.enums import Role
from ..core.exceptions import DomainError, Forbidden, ValidationFailure
from ..core.principal import Principal

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    "ValidationFailure": 400,
    "GeofenceViolation": 400,
    "OutsideWindow": 400,
    "Forbidden": 403,
    "NotFound": 404,
    "AlreadyTapped": 409,
    "NotTappedIn": 409,
    "AlreadyDecided": 409,
    "ConcurrentModification": 409,
    "Timeout": 504,
}


def current_principal() -> Principal:
    """Principal stored in the session by the upstream identity layer."""
    return Principal.of(int(session["user_id"]), session.get("roles") or ())


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return jsonify({"success": False, "error": "Unauthenticated", "message": "Please log in first"}), 401
        return view(*args, **kwargs)

    return wrapper


def roles_required(*roles: Role):
    def decorator(view):
        @wraps(view)
        @login_required
        def wrapper(*args, **kwargs):
            if not current_principal().has_role(*roles):
                raise Forbidden("You do not have permission to perform this action")
            return view(*args, **kwargs)

        return wrapper

    return decorator


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        return jsonify({"success": False, **e.to_dict()}), STATUS_BY_KIND.get(e.kind, 400)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return e
        logger.exception("unhandled error on %s %s", request.method, request.path)
        return jsonify({"success": False, "error": "InternalError", "message": "Internal server error"}), 500


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationFailure("Request body must be a JSON object")
    return data


def get_text(data: Dict[str, Any], name: str) -> Optional[str]:
    """Optional free-text field; numbers are taken as their string form."""
    value = data.get(name)
    if value is None:
        return None
    if isinstance(value, (dict, list, bool)):
        raise ValidationFailure(f"{name} must be text")
    return str(value)


def get_float(data: Dict[str, Any], name: str, *, required: bool = True) -> Optional[float]:
    value = data.get(name)
    if value is None or value == "":
        if required:
            raise ValidationFailure(f"{name} is required")
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationFailure(f"{name} must be a number")


def get_datetime(data: Dict[str, Any], name: str, *, required: bool = True) -> Optional[datetime]:
    value = data.get(name)
    if not value:
        if required:
            raise ValidationFailure(f"{name} is required")
        return None
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationFailure(f"{name} must be an ISO datetime (YYYY-MM-DDTHH:MM)")
    return to_local_naive(parsed, current_app.config.get("TIMEZONE", DEFAULT_TIMEZONE))


def to_json(value: Any) -> Any:
    """Dataclasses, enums and dates to plain JSON types."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_json(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value


def ok(data: Any = None, status: int = 200, **extra: Any):
    body = {"success": True, "data": to_json(data)}
    body.update(extra)
    return jsonify(body), status
