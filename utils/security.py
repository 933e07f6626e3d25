# ===============================================================
# utils/security.py
# ===============================================================
import re
import itsdangerous

from config import AUTH_SIGNING_SECRET, AUTH_TOKEN_TTL_SECONDS


# ---------------------------------------------------------------
# 📍 Guest contact validation (guest registration form rules)
# ---------------------------------------------------------------
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[0-9]{10}$")
FINGERPRINT_RE = re.compile(r"^[A-Za-z0-9_-]{8,128}$")

MAX_NAME_LENGTH = 100


def normalize_phone(phone: str) -> str:
    """Strip spaces/dashes and a leading +91 country code."""
    if not phone:
        return ""
    phone = phone.strip().replace(" ", "").replace("-", "")
    if phone.startswith("+91") and len(phone) == 13:
        phone = phone[3:]
    return phone


def validate_email(email: str) -> bool:
    return bool(email) and bool(EMAIL_RE.match(email.strip()))


def validate_phone(phone: str) -> bool:
    """Guests must give a 10-digit mobile number."""
    return bool(PHONE_RE.match(normalize_phone(phone)))


def validate_name(name: str) -> bool:
    return bool(name and name.strip()) and len(name.strip()) <= MAX_NAME_LENGTH


def validate_fingerprint(fingerprint: str) -> bool:
    """Device fingerprints are opaque visitor ids: url-safe, 8-128 chars."""
    return bool(fingerprint) and bool(FINGERPRINT_RE.match(fingerprint))


# ---------------------------------------------------------------
# 🔐 Session tokens for registered users
# ---------------------------------------------------------------
TOKEN_SALT = "dailyquiz-auth"
serializer = itsdangerous.URLSafeTimedSerializer(AUTH_SIGNING_SECRET, salt=TOKEN_SALT)


def generate_user_token(user_id) -> str:
    """
    Sign a session token carrying the user's id.

    This API only verifies tokens. Whatever service signs users in issues
    them with this helper (same secret and salt), and the tests use it to
    build Authorization headers.
    """
    return serializer.dumps({"uid": str(user_id)})


def verify_user_token(token: str, max_age: int = AUTH_TOKEN_TTL_SECONDS) -> str | None:
    """Return the user id from a valid token, or None if bad/expired."""
    try:
        payload = serializer.loads(token, max_age=max_age)
    except itsdangerous.BadData:
        return None
    if not isinstance(payload, dict) or not payload.get("uid"):
        return None
    return str(payload["uid"])
