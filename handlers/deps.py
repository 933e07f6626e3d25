# ==================================================
# handlers/deps.py
# ==================================================
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from services.identity import GuestContact, Identity, clean_guest_contact, resolve_identity


async def current_identity(
    authorization: Optional[str] = Header(None),
    x_device_fingerprint: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session),
) -> Identity:
    """Registered user from the bearer token, else a guest keyed by device fingerprint."""
    return await resolve_identity(
        session,
        authorization=authorization,
        device_fingerprint=x_device_fingerprint,
    )


def guest_contact(guest) -> Optional[GuestContact]:
    if guest is None:
        return None
    return clean_guest_contact(guest.name, guest.email, guest.phone)
