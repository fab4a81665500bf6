from __future__ import annotations

from typing import Sequence

import mysql.connector

from ..core.enums import Decision
from ..core.exceptions import ConcurrentModification
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, is_duplicate_key
from .model import ApprovalDecision
from .repository import DecisionRepository


class MySQLDecisionRepository(DecisionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for(self, *, request_kind: str, request_id: int) -> Sequence[ApprovalDecision]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT step, approver_user_id, decision, notes, decided_at
                FROM approval_decisions
                WHERE request_kind=%s AND request_id=%s
                ORDER BY step
                """,
                (request_kind, int(request_id)),
            )
            return [
                ApprovalDecision(
                    approver_id=int(r["approver_user_id"]),
                    decision=Decision(r["decision"]),
                    decided_at=r["decided_at"],
                    notes=r.get("notes"),
                    step=int(r["step"]),
                )
                for r in fetchall(cur)
            ]

    def add(self, *, request_kind: str, request_id: int, decision: ApprovalDecision) -> None:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO approval_decisions(
                        request_kind, request_id, step, approver_user_id, decision, notes, decided_at
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        request_kind,
                        int(request_id),
                        int(decision.step),
                        int(decision.approver_id),
                        decision.decision.value,
                        decision.notes,
                        decision.decided_at,
                    ),
                )
        except mysql.connector.IntegrityError as e:
            if is_duplicate_key(e):
                raise ConcurrentModification("This step was decided by someone else, please reload") from e
            raise
