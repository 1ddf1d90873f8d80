import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "study_hall_test"),
    "connect_timeout": 5,
}

STORE_BACKEND = "memory"

SEAT_COUNT = 150
SHIFT_FEES = {"morning": 600, "evening": 600, "fullday": 1000}
SHIFT_WINDOWS = {
    "morning": ("07:00", "14:00"),
    "evening": ("14:00", "21:30"),
    "fullday": ("07:00", "21:30"),
}

OVERDUE_GRACE_DAYS = 5
WIPE_PAYMENT_HISTORY_ON_REACTIVATION = True
MEMBER_ID_PREFIX = "TSMEM"
MAX_WRITE_ATTEMPTS = 3

FCM_PROJECT_ID = ""
FCM_CREDENTIALS_FILE = ""
PUSH_TIMEOUT_SECONDS = 1
PUSH_MAX_WORKERS = 2
NOTIFY_PUSH_DEADLINE_SECONDS = 1

LOG_LEVEL = "WARNING"
DEBUG = False
TESTING = True

AUTO_INIT_DB = False
