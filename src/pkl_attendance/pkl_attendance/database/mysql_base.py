from __future__ import annotations

from contextlib import contextmanager
from datetime import time, timedelta
from typing import Any, Dict, Iterator, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import ConcurrentModification, Timeout
from .connection import DatabaseConnection

_TIMEOUT_ERRNOS = {
    errorcode.ER_LOCK_WAIT_TIMEOUT,
    errorcode.CR_SERVER_LOST,
    errorcode.CR_SERVER_GONE_ERROR,
    errorcode.CR_CONN_HOST_ERROR,
    3024,  # ER_QUERY_TIMEOUT (max_execution_time exceeded)
}
_CONFLICT_ERRNOS = {errorcode.ER_LOCK_DEADLOCK}


@contextmanager
def translate_errors() -> Iterator[None]:
    """Map driver timeouts/deadlocks to the retryable domain errors."""
    try:
        yield
    except mysql.connector.Error as e:
        if e.errno in _TIMEOUT_ERRNOS:
            raise Timeout("Database did not respond in time, please retry") from e
        if e.errno in _CONFLICT_ERRNOS:
            raise ConcurrentModification("Concurrent update detected, please retry") from e
        raise


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    shared = conn_factory.active
    if shared is not None:
        # Inside atomic(): the transaction owner commits or rolls back.
        cur = shared.cursor(dictionary=dictionary)
        try:
            with translate_errors():
                yield shared, cur
        finally:
            cur.close()
        return

    with translate_errors():
        conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            with translate_errors():
                yield conn, cur
                conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def is_duplicate_key(error: Exception) -> bool:
    return isinstance(error, mysql.connector.IntegrityError) and error.errno == errorcode.ER_DUP_ENTRY


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def normalize_mysql_time(value: Any) -> Optional[time]:
    """Normalize MySQL TIME values across connector implementations.

    mysql-connector can return TIME as:
    - datetime.time
    - datetime.timedelta
    - string (e.g. '08:30:00')
    """

    if value is None:
        return None

    if isinstance(value, time):
        return value

    if isinstance(value, timedelta):
        total_seconds = int(value.total_seconds()) % 86400
        hours = total_seconds // 3600
        minutes = (total_seconds % 3600) // 60
        seconds = total_seconds % 60
        return time(hour=hours, minute=minutes, second=seconds)

    if isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) < 2:
            raise ValueError(f"Invalid time string: {value!r}")
        hours = int(parts[0])
        minutes = int(parts[1])
        seconds = int(parts[2]) if len(parts) >= 3 and parts[2] else 0
        return time(hour=hours, minute=minutes, second=seconds)

    raise TypeError(f"Unsupported MySQL TIME value type: {type(value)!r}")
