"""
Calendar accounts.

Provider OAuth is not wired yet: connect() stores placeholder credentials and
sync() only records that a sync was requested. The consent URL is real and
carries a signed state bound to the requesting user.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode
from uuid import UUID

from sqlalchemy.orm import Session

from core import clock
from core.config import settings
from models import CalendarAccount, User
from services import users_service
from services.oauth_state import create_oauth_state
from services.token_encryption import encrypt_token

logger = logging.getLogger(__name__)

GOOGLE_AUTH_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"
PLACEHOLDER_TOKEN_TTL_S = 3600


def connect(db: Session, user: User, *, provider: str = "google", calendar_id: Optional[str] = None) -> CalendarAccount:
    """Create or refresh the user's account for `provider`."""
    account = (
        db.query(CalendarAccount)
        .filter(CalendarAccount.user_id == user.id, CalendarAccount.provider == provider)
        .first()
    )
    if account is None:
        account = CalendarAccount(user_id=user.id, provider=provider)
        db.add(account)

    account.access_token = encrypt_token("placeholder_token")
    account.refresh_token = encrypt_token("placeholder_refresh")
    account.token_expires_at = clock.utcnow() + timedelta(seconds=PLACEHOLDER_TOKEN_TTL_S)
    account.calendar_id = calendar_id or "primary"
    account.is_active = True
    account.email = user.email
    account.name = user.name
    db.flush()
    db.refresh(account)
    logger.info("Calendar connected", extra={"extra_fields": {"user_id": str(user.id), "provider": provider}})
    return account


def sync(db: Session, user_id: UUID) -> int:
    """Mark every active account of the user as synced. Returns how many were touched."""
    users_service.get_user(db, user_id)
    accounts = (
        db.query(CalendarAccount)
        .filter(CalendarAccount.user_id == user_id, CalendarAccount.is_active.is_(True))
        .all()
    )
    now = clock.utcnow().isoformat()
    for account in accounts:
        account.sync_state = {**(account.sync_state or {}), "last_sync_at": now}
    db.flush()
    logger.info("Calendar sync requested", extra={"extra_fields": {"user_id": str(user_id), "accounts": len(accounts)}})
    return len(accounts)


def build_auth_url(user: User, provider: str = "google") -> tuple[str, str]:
    state = create_oauth_state(str(user.id), provider)
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID or "",
        "redirect_uri": settings.GOOGLE_REDIRECT_URI,
        "scope": GOOGLE_CALENDAR_SCOPE,
        "response_type": "code",
        "access_type": "offline",
        "state": state,
    }
    return f"{GOOGLE_AUTH_ENDPOINT}?{urlencode(params)}", state
