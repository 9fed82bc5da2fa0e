import os

# -----------------------------
# Storage
# -----------------------------
DB_FILE = os.getenv("BUDGET_DB_FILE", "budget.duckdb")
LOG_FILE = os.getenv("BUDGET_LOG_FILE", "budget_engine.log")

# -----------------------------
# Scheduled triggers
# -----------------------------
CRON_SECRET = os.getenv("CRON_SECRET")

# -----------------------------
# Notifications
# -----------------------------
NOTIFY_WEBHOOK_URL = os.getenv("NOTIFY_WEBHOOK_URL")
NOTIFY_TIMEOUT_SECONDS = float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "10"))

# -----------------------------
# Engine constants
# -----------------------------
DEFAULT_ALERT_THRESHOLD = 0.8
MIN_ALERT_THRESHOLD = 0.5
MAX_ALERT_THRESHOLD = 0.8
OVERALL_CHECKPOINT = 0.9     # fixed checkpoint, outranks the configured threshold
CATEGORY_CHECKPOINT = 0.9
UPCOMING_WINDOW_DAYS = 7
AUTO_ENTRY_PREFIX = "[Auto] "
