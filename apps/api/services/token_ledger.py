"""
Refresh Token Ledger

Single source of truth for refresh-token validity. A row is valid while
`is_revoked` is false and `expires_at` is in the future. Rows are looked up by
the SHA-256 of the raw token through a unique index.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from core import clock
from core.config import settings
from core.security import generate_refresh_token, hash_refresh_token
from models import RefreshToken

logger = logging.getLogger(__name__)


def store(
    db: Session,
    *,
    user_id: UUID,
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> tuple[str, RefreshToken]:
    """Mint a refresh token for `user_id`. Returns the raw value and the ledger row."""
    raw = generate_refresh_token()
    row = RefreshToken(
        user_id=user_id,
        token_hash=hash_refresh_token(raw),
        expires_at=clock.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        is_revoked=False,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    db.add(row)
    db.flush()
    return raw, row


def find_valid(db: Session, raw_token: str) -> Optional[RefreshToken]:
    if not raw_token:
        return None
    return (
        db.query(RefreshToken)
        .filter(
            RefreshToken.token_hash == hash_refresh_token(raw_token),
            RefreshToken.is_revoked.is_(False),
            RefreshToken.expires_at > clock.utcnow(),
        )
        .first()
    )


def redeem(db: Session, token_id: UUID) -> bool:
    """
    Revoke a token as part of rotation.

    Conditional on the row still being unrevoked: of two concurrent
    redemptions of the same token exactly one sees rowcount == 1.
    """
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.id == token_id, RefreshToken.is_revoked.is_(False))
        .values(is_revoked=True, revoked_at=clock.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def revoke_by_hash(db: Session, raw_token: str) -> bool:
    if not raw_token:
        return False
    result = db.execute(
        update(RefreshToken)
        .where(
            RefreshToken.token_hash == hash_refresh_token(raw_token),
            RefreshToken.is_revoked.is_(False),
        )
        .values(is_revoked=True, revoked_at=clock.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def revoke_all_for_user(db: Session, user_id: UUID) -> int:
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.is_revoked.is_(False))
        .values(is_revoked=True, revoked_at=clock.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def purge_expired(db: Session, before: Optional[datetime] = None) -> int:
    """Physically delete rows whose expiry has passed. Garbage collection only."""
    cutoff = before or clock.utcnow()
    result = db.execute(
        delete(RefreshToken)
        .where(RefreshToken.expires_at <= cutoff)
        .execution_options(synchronize_session=False)
    )
    logger.info("Purged expired refresh tokens", extra={"extra_fields": {"count": result.rowcount}})
    return result.rowcount
