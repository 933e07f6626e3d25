# ================================================================
# services/identity.py
# ================================================================
"""
Identity resolution for every core operation.

A request acts either as a registered user (signed bearer token) or as a
guest identified by a device fingerprint plus contact details. Both reduce
to an ``Identity`` whose ``key`` is what uniqueness constraints are built on.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from errors import Unauthenticated, InvalidGuestDetails
from helpers import get_user_by_id, mask_sensitive, parse_uuid
from utils.security import (
    normalize_phone,
    validate_email,
    validate_fingerprint,
    validate_name,
    validate_phone,
    verify_user_token,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuestContact:
    name: str
    email: str
    phone: str


@dataclass(frozen=True)
class Identity:
    user_id: Optional[uuid.UUID] = None
    device_fingerprint: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    @property
    def key(self) -> str:
        if self.user_id is not None:
            return f"user:{self.user_id}"
        return f"device:{self.device_fingerprint}"

    def __str__(self) -> str:
        if self.user_id is not None:
            return f"user:{mask_sensitive(str(self.user_id))}"
        return f"device:{mask_sensitive(self.device_fingerprint)}"


def clean_guest_contact(name: str, email: str, phone: str) -> GuestContact:
    """Validate guest contact details; raise InvalidGuestDetails on any problem."""
    if not validate_name(name):
        raise InvalidGuestDetails("Please enter your name")
    if not validate_email(email):
        raise InvalidGuestDetails("Please enter a valid email address")
    if not validate_phone(phone):
        raise InvalidGuestDetails("Please enter a valid 10-digit phone number")
    return GuestContact(
        name=name.strip(),
        email=email.strip().lower(),
        phone=normalize_phone(phone),
    )


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("Malformed Authorization header")
    return token.strip()


async def resolve_identity(
    session: AsyncSession,
    authorization: Optional[str] = None,
    device_fingerprint: Optional[str] = None,
    require_registered: bool = False,
) -> Identity:
    """
    Work out who is acting.

    - A bearer token must verify and point at an existing user, otherwise
      Unauthenticated (a bad token never falls back to a guest identity).
    - Without a token, a well-formed device fingerprint yields a guest.
    - ``require_registered`` rejects guests outright.
    """
    token = _bearer_token(authorization)
    if token:
        raw_uid = verify_user_token(token)
        if raw_uid is None:
            logger.warning("🚫 Rejected invalid or expired session token")
            raise Unauthenticated("Session expired, please sign in again")
        user_id = parse_uuid(raw_uid)
        if user_id is None:
            raise Unauthenticated("Session expired, please sign in again")

        user = await get_user_by_id(session, user_id)
        if user is None:
            logger.warning(f"🚫 Token for unknown user {mask_sensitive(raw_uid)}")
            raise Unauthenticated("Account not found")
        return Identity(user_id=user.id, display_name=user.full_name or user.email)

    if require_registered:
        raise Unauthenticated("Please sign in to continue")

    if device_fingerprint is None:
        raise Unauthenticated()
    device_fingerprint = device_fingerprint.strip()
    if not validate_fingerprint(device_fingerprint):
        raise Unauthenticated("Invalid device fingerprint")

    return Identity(device_fingerprint=device_fingerprint)
