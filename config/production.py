import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "pkl_attendance"),
    "connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT", "10")),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

TIMEZONE = os.getenv("TIMEZONE", "Asia/Jakarta")

DEFAULT_RADIUS_METERS = int(os.getenv("DEFAULT_RADIUS_METERS", "100"))
TAP_IN_GRACE_MINUTES = int(os.getenv("TAP_IN_GRACE_MINUTES", "120"))
RECONCILIATION_CUTOFF = os.getenv("RECONCILIATION_CUTOFF", "23:59")
LOCK_TIMEOUT_SECONDS = float(os.getenv("LOCK_TIMEOUT_SECONDS", "5"))

MAX_MANUAL_REQUESTS_PER_MONTH = int(os.getenv("MAX_MANUAL_REQUESTS_PER_MONTH", "3"))
MIN_JUSTIFICATION_LENGTH = 20
MIN_LEAVE_REASON_LENGTH = 5

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
