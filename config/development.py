import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "study_hall_db"),
    "connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT", "10")),
}

# "mysql" or "memory" (in-process store, data is lost on restart)
STORE_BACKEND = os.getenv("STORE_BACKEND", "mysql")

SEAT_COUNT = int(os.getenv("SEAT_COUNT", "150"))

# Monthly fee per shift, whole rupees
SHIFT_FEES = {"morning": 600, "evening": 600, "fullday": 1000}

# Daily opening windows, [start, end)
SHIFT_WINDOWS = {
    "morning": ("07:00", "14:00"),
    "evening": ("14:00", "21:30"),
    "fullday": ("07:00", "21:30"),
}

OVERDUE_GRACE_DAYS = int(os.getenv("OVERDUE_GRACE_DAYS", "5"))
WIPE_PAYMENT_HISTORY_ON_REACTIVATION = bool(int(os.getenv("WIPE_PAYMENT_HISTORY_ON_REACTIVATION", "1")))
MEMBER_ID_PREFIX = os.getenv("MEMBER_ID_PREFIX", "TSMEM")
MAX_WRITE_ATTEMPTS = int(os.getenv("MAX_WRITE_ATTEMPTS", "3"))

# Leave FCM_PROJECT_ID empty to only log push notifications
FCM_PROJECT_ID = os.getenv("FCM_PROJECT_ID", "")
FCM_CREDENTIALS_FILE = os.getenv("FCM_CREDENTIALS_FILE", "")
PUSH_TIMEOUT_SECONDS = float(os.getenv("PUSH_TIMEOUT_SECONDS", "10"))
PUSH_MAX_WORKERS = int(os.getenv("PUSH_MAX_WORKERS", "8"))
# Pushes sent inline with a member operation give up after this many seconds.
NOTIFY_PUSH_DEADLINE_SECONDS = float(os.getenv("NOTIFY_PUSH_DEADLINE_SECONDS", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
DEBUG = True

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
