"""Logging configuration.

Console output only; the process supervisor owns log shipping.
"""

from __future__ import annotations

import logging
import logging.config
from typing import Any, Dict

# Top-level package as actually imported (`pkl_attendance` or the
# `src.pkl_attendance.pkl_attendance` path used by the root `app.py`).
PACKAGE_LOGGER = __name__.rsplit(".core.logging", 1)[0]


def build_logging_config(level: str = "INFO", *, debug: bool = False) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            },
            "colored": {
                "()": "colorlog.ColoredFormatter",
                "format": "%(log_color)s%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "log_colors": {
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "red,bg_white",
                },
            },
        },
        "handlers": {
            "console": {
                "level": "DEBUG" if debug else level,
                "class": "logging.StreamHandler",
                "formatter": "colored" if debug else "standard",
            },
        },
        "loggers": {
            # Propagates to the root console handler.
            PACKAGE_LOGGER: {"level": "DEBUG" if debug else level},
        },
        "root": {"handlers": ["console"], "level": "WARNING"},
    }


def configure_logging(level: str = "INFO", *, debug: bool = False) -> None:
    logging.config.dictConfig(build_logging_config(level.upper(), debug=debug))
