import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "pkl_attendance_test"),
    "connect_timeout": 5,
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

TIMEZONE = "Asia/Jakarta"

DEFAULT_RADIUS_METERS = 100
TAP_IN_GRACE_MINUTES = 120
RECONCILIATION_CUTOFF = "23:59"
LOCK_TIMEOUT_SECONDS = 1.0

MAX_MANUAL_REQUESTS_PER_MONTH = 3
MIN_JUSTIFICATION_LENGTH = 20
MIN_LEAVE_REASON_LENGTH = 5

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
