# ===============================================================
# helpers.py
# ===============================================================
import logging
import uuid
from datetime import datetime, timezone
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from models import User

logger = logging.getLogger(__name__)


# -------------------------------------------------
# Current instant (timezone-aware)
# -------------------------------------------------
def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -------------------------------------------------
# Get user by DB ID
# -------------------------------------------------
async def get_user_by_id(session: AsyncSession, user_id) -> User | None:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


# ----------------------------
# 🧩 Mask Sensitive Helper
# ----------------------------
def mask_sensitive(data: str, visible: int = 4) -> str:
    """Mask all but last few visible characters of sensitive data."""
    if not data:
        return ""
    data = str(data)
    if len(data) <= visible:
        return data
    return f"{'*' * (len(data) - visible)}{data[-visible:]}"


# -------------------------------------------------
# Parse a client-supplied UUID (None if malformed)
# -------------------------------------------------
def parse_uuid(value) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None
