"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from datetime import time

EARTH_RADIUS_METERS = 6_371_000

DEFAULT_TIMEZONE = "Asia/Jakarta"
DEFAULT_RADIUS_METERS = 100
DEFAULT_GRACE_PERIOD_MINUTES = 120
DEFAULT_RECONCILIATION_CUTOFF = time(23, 59)
DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0

# Monday=0 ... Friday=4
DEFAULT_WORK_DAYS = frozenset({0, 1, 2, 3, 4})

MAX_MANUAL_REQUESTS_PER_MONTH = 3
MIN_JUSTIFICATION_LENGTH = 20
MIN_LEAVE_REASON_LENGTH = 5

DEFAULT_HISTORY_LIMIT = 10
MAX_HISTORY_LIMIT = 50
