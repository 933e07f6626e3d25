# ======================================
# config.py
# (Loads critical environment variables)
# ======================================
import os
import re
from datetime import timedelta, timezone
from dotenv import load_dotenv

# Load .env when running locally
load_dotenv()

# ----------------------
# Database
# ----------------------
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("❌ Missing DATABASE_URL env var")

SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

# ----------------------
# Razorpay
# ----------------------
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
if not RAZORPAY_KEY_ID:
    raise RuntimeError("❌ Missing RAZORPAY_KEY_ID env var")

RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")
if not RAZORPAY_KEY_SECRET:
    raise RuntimeError("❌ Missing RAZORPAY_KEY_SECRET env var")

RAZORPAY_BASE_URL = os.getenv("RAZORPAY_BASE_URL", "https://api.razorpay.com/v1")
CURRENCY = os.getenv("CURRENCY", "INR")

# ----------------------
# Auth (registered users)
# ----------------------
AUTH_SIGNING_SECRET = os.getenv("AUTH_SIGNING_SECRET")
if not AUTH_SIGNING_SECRET:
    raise RuntimeError("❌ Missing AUTH_SIGNING_SECRET env var")

AUTH_TOKEN_TTL_SECONDS = int(os.getenv("AUTH_TOKEN_TTL_SECONDS", "2592000"))  # 30 days

# ----------------------
# Quiz rules
# ----------------------
LEADERBOARD_SIZE = int(os.getenv("LEADERBOARD_SIZE", "10"))
MAX_TIME_SPENT_SECONDS = int(os.getenv("MAX_TIME_SPENT_SECONDS", "86400"))
PENDING_PAYMENT_TTL_MINUTES = int(os.getenv("PENDING_PAYMENT_TTL_MINUTES", "30"))
SWEEPER_INTERVAL_SECONDS = int(os.getenv("SWEEPER_INTERVAL_SECONDS", "300"))

RESULTS_UTC_OFFSET = os.getenv("RESULTS_UTC_OFFSET", "+05:30")

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):(\d{2})$")


def parse_utc_offset(value: str) -> timezone:
    """Turn '+05:30' into a fixed-offset tzinfo."""
    match = _OFFSET_RE.match(value.strip())
    if not match:
        raise RuntimeError(f"❌ Invalid RESULTS_UTC_OFFSET: {value!r}")
    sign, hours, minutes = match.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes))
    return timezone(-delta if sign == "-" else delta)


RESULTS_TZ = parse_utc_offset(RESULTS_UTC_OFFSET)

# ----------------------
# HTTP
# ----------------------
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
