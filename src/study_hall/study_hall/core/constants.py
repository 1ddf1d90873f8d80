"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

MEMBERS_COLLECTION = "members"
ADMINS_COLLECTION = "admins"
ATTENDANCE_COLLECTION = "attendance_sessions"
OPEN_SESSIONS_COLLECTION = "open_sessions"
SEAT_CLAIMS_COLLECTION = "seat_claims"
ALERTS_COLLECTION = "alerts"
FEEDBACK_COLLECTION = "feedback"
APP_CONFIG_COLLECTION = "app_configuration"
MEMBER_COUNTER_DOC_ID = "member_counter"

DEFAULT_SEAT_COUNT = 150
DEFAULT_OVERDUE_GRACE_DAYS = 5
DEFAULT_MEMBER_ID_PREFIX = "TSMEM"
DEFAULT_MAX_WRITE_ATTEMPTS = 3

CURRENCY_PREFIX = "Rs."
NOT_APPLICABLE = "N/A"

PUSH_CHUNK_SIZE = 500
DEFAULT_PUSH_TIMEOUT_SECONDS = 10
DEFAULT_PUSH_MAX_WORKERS = 8
# Total budget for pushes sent inline with a member operation.
DEFAULT_NOTIFY_PUSH_DEADLINE_SECONDS = 5
PUSH_ICON = "/logo.png"
PUSH_ALERTS_URL = "/member/alerts"
PUSH_FEEDBACK_URL = "/admin/feedback"

FEEDBACK_PREVIEW_LENGTH = 100
FEEDBACK_SNIPPET_LENGTH = 50
