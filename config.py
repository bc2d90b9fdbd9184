import os
from datetime import datetime, timezone
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

ENV = os.getenv("ENV", "TEST").upper()

DEFAULTS = {
    "TEST": {
        "STORAGE_BACKEND": "memory",
        "CLOUDINARY_CLOUD_NAME": "",
        "CLOUDINARY_UPLOAD_PRESET": "",
    },
    "LIVE": {
        "STORAGE_BACKEND": "cloudinary",
        "CLOUDINARY_CLOUD_NAME": "dgtalrz4n",
        "CLOUDINARY_UPLOAD_PRESET": "maw1e4ud",
    }
}

cfg = DEFAULTS["LIVE"] if ENV == "LIVE" else DEFAULTS["TEST"]

# ---------------- Ticket storage ----------------
# "memory" keeps uploads in process and hands out memory:// URLs.
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", cfg["STORAGE_BACKEND"]).strip().lower()
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", cfg["CLOUDINARY_CLOUD_NAME"])
CLOUDINARY_UPLOAD_PRESET = os.getenv("CLOUDINARY_UPLOAD_PRESET", cfg["CLOUDINARY_UPLOAD_PRESET"])
CLOUDINARY_UPLOAD_URL = os.getenv(
    "CLOUDINARY_UPLOAD_URL",
    f"https://api.cloudinary.com/v1_1/{CLOUDINARY_CLOUD_NAME}/auto/upload",
)
UPLOAD_TIMEOUT_SECONDS = int(os.getenv("UPLOAD_TIMEOUT_SECONDS", "60"))

# ---------------- Payment / booking ----------------
MERCHANT_NAME = os.getenv("MERCHANT_NAME", "NewBi Entertainment")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")
PREVIEW_AMOUNT = int(os.getenv("PREVIEW_AMOUNT", "1"))  # nominal amount for the settings QR
QR_SERVICE_URL = os.getenv("QR_SERVICE_URL", "https://api.qrserver.com/v1/create-qr-code/")
BOOKING_REF_PREFIX = os.getenv("BOOKING_REF_PREFIX", "NB-")

# Email recipients
ADMIN_EMAILS = [e.strip() for e in os.getenv(
    "ADMIN_EMAILS",
    "partnership@newbi.live"
).split(",") if e.strip()]

EMAIL_CONFIG = {
    "smtp_server": os.getenv("SMTP_SERVER", "smtpout.secureserver.net"),
    "smtp_port": int(os.getenv("SMTP_PORT", 587)),
    "smtp_username": os.getenv("SMTP_USERNAME", "tickets@newbi.live"),
    "smtp_password": os.getenv("SMTP_PASSWORD", ""),  # set via ENV
    "from_addr": os.getenv("FROM_EMAIL", "tickets@newbi.live"),
    "timeout": int(os.getenv("SMTP_TIMEOUT", "30")),
}

# ---------------- Admin backoffice ----------------
ADMIN_SECRET_KEY = os.getenv("ADMIN_SECRET_KEY", "dev-only-change-me")
DISPLAY_TZ = os.getenv("DISPLAY_TZ", "Asia/Kolkata")

# ---------------- Paths (stable, absolute) ----------------
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Logging
LOG_DIR = os.getenv("LOG_DIR", os.path.join(BASE_DIR, "logs"))
LOG_FILE = os.getenv("LOG_FILE", "ticket_orders.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()

# Local order/settings DB (SQLite)
STATE_DB_PATH = os.getenv("STATE_DB_PATH", os.path.join(BASE_DIR, "state.db"))


# -------------- HTTP Session --------------
SESSION = requests.Session()
retries = Retry(
    total=3,
    backoff_factor=2.0,
    status_forcelist=[502, 503, 504],
    allowed_methods=["POST"],
)
SESSION.mount("http://", HTTPAdapter(max_retries=retries))
SESSION.mount("https://", HTTPAdapter(max_retries=retries))

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
