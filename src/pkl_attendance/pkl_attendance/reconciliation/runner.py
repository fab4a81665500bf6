from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Optional

from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_TIMEZONE
from .model import ReconciliationReport
from .service import ReconciliationJob

logger = logging.getLogger(__name__)


class ReconciliationRunner:
    """Entry point for whatever fires the daily sweep (CLI, cron, admin call).

    Runs never overlap: a trigger that arrives while a sweep is in flight is
    dropped with a warning, not queued.
    """

    def __init__(self, job: ReconciliationJob, *, timezone: str = DEFAULT_TIMEZONE):
        self._job = job
        self._timezone = timezone
        self._running = threading.Lock()

    def trigger(self, on_date: Optional[date] = None) -> Optional[ReconciliationReport]:
        if not self._running.acquire(blocking=False):
            logger.warning("reconciliation already running; trigger for %s skipped", on_date or "today")
            return None
        try:
            day = on_date or now_local(self._timezone).date()
            return self._job.run(day)
        finally:
            self._running.release()
