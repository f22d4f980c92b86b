import os

DAILY_SWIPE_LIMIT = int(os.getenv("DAILY_SWIPE_LIMIT", "100"))
SWIPE_TIMEZONE = os.getenv("SWIPE_TIMEZONE", "UTC")
DISCOVER_DEFAULT_LIMIT = int(os.getenv("DISCOVER_DEFAULT_LIMIT", "20"))
DISCOVER_MAX_LIMIT = int(os.getenv("DISCOVER_MAX_LIMIT", "50"))
MINIMUM_AGE = int(os.getenv("MINIMUM_AGE", "18"))

DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000"))
DB_POOL_TIMEOUT_SECONDS = int(os.getenv("DB_POOL_TIMEOUT_SECONDS", "10"))

JWT_SECRET = os.getenv("JWT_SECRET", "")
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "10080"))
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
RESEND_FROM_EMAIL = os.getenv("RESEND_FROM_EMAIL", "Therianr <noreply@therianr.com>")
EMAIL_MIN_INTERVAL_MS = int(os.getenv("EMAIL_MIN_INTERVAL_MS", "600"))
EMAIL_MAX_RETRIES = int(os.getenv("EMAIL_MAX_RETRIES", "2"))
ONESIGNAL_APP_ID = os.getenv("ONESIGNAL_APP_ID", "")
ONESIGNAL_API_KEY = os.getenv("ONESIGNAL_API_KEY", "")
NOTIFY_WORKERS = int(os.getenv("NOTIFY_WORKERS", "4"))
SENDER_TIMEOUT_SECONDS = float(os.getenv("SENDER_TIMEOUT_SECONDS", "15"))
APP_BASE_URL = os.getenv("APP_BASE_URL", "https://therianr.com")

RL_SWIPE_LIMIT = int(os.getenv("RL_SWIPE_LIMIT", "60"))
RL_BLOCK_LIMIT = int(os.getenv("RL_BLOCK_LIMIT", "30"))
RL_REPORT_LIMIT = int(os.getenv("RL_REPORT_LIMIT", "10"))
RL_MESSAGE_LIMIT = int(os.getenv("RL_MESSAGE_LIMIT", "60"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))

_default_origins = ",".join(
    [
        "http://localhost:3000",
        "http://localhost:4000",
        "http://localhost:5173",
        "https://therianr.com",
        "https://www.therianr.com",
    ]
)
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", _default_origins).split(",") if o.strip()]
