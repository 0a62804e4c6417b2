"""
Auth Service

Credential lifecycle: registration, login with lockout, refresh-token
rotation, logout and bulk revocation.

Every successful login/refresh writes one new ledger row; every successful
refresh revokes exactly one prior row.
"""
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core import clock
from core.config import settings
from core.exceptions import (
    AccountInactiveError,
    AccountLockedError,
    ErrorCode,
    InvalidCredentialsError,
    InvalidTokenError,
    PreconditionRequiredError,
    ValidationError,
)
from core.password_policy import validate_password
from core.security import ACCESS_TOKEN_EXPIRE_MINUTES, create_access_token, verify_password
from models import User
from schemas import AuthResponse, TokenPair, UserResponse
from services import token_ledger, users_service

logger = logging.getLogger(__name__)


def _check_password_policy(password: str) -> None:
    is_valid, errors = validate_password(password)
    if not is_valid:
        raise ValidationError("Password does not meet requirements", field="password", details={"field": "password", "errors": errors})


def issue_tokens(
    db: Session,
    user: User,
    *,
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> TokenPair:
    access_token, expires_at = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role, "name": user.name}
    )
    raw_refresh, _ = token_ledger.store(db, user_id=user.id, user_agent=user_agent, ip_address=ip_address)
    return TokenPair(
        access_token=access_token,
        refresh_token=raw_refresh,
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        expires_at=expires_at,
    )


def _auth_response(db: Session, user: User, **client_info) -> AuthResponse:
    tokens = issue_tokens(db, user, **client_info)
    return AuthResponse(tokens=tokens, user=UserResponse.model_validate(user))


def register(
    db: Session,
    *,
    email: str,
    password: str,
    name: str,
    phone: Optional[str] = None,
    role: str = "client",
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> AuthResponse:
    _check_password_policy(password)
    user = users_service.create_user(db, email=email, password=password, name=name, phone=phone, role=role)
    db.refresh(user)
    return _auth_response(db, user, user_agent=user_agent, ip_address=ip_address)


def login(
    db: Session,
    *,
    email: str,
    password: str,
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> AuthResponse:
    user = users_service.find_by_email(db, email)
    if not user:
        raise InvalidCredentialsError()

    locked_until = clock.ensure_utc(user.locked_until)
    now = clock.utcnow()
    if locked_until and locked_until > now:
        raise AccountLockedError(retry_after_s=int((locked_until - now).total_seconds()) + 1)

    if not verify_password(password, user.password_hash):
        users_service.register_failed_login(db, user.id)
        # The request transaction is rolled back on the way out; the counter must survive it.
        db.commit()
        logger.warning("Failed login", extra={"extra_fields": {"user_id": str(user.id)}})
        raise InvalidCredentialsError()

    if user.status != "active":
        raise AccountInactiveError(user.status)

    users_service.reset_login_state(db, user.id)
    db.refresh(user)
    logger.info("User logged in", extra={"extra_fields": {"user_id": str(user.id)}})
    return _auth_response(db, user, user_agent=user_agent, ip_address=ip_address)


def refresh(
    db: Session,
    raw_token: str,
    *,
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> AuthResponse:
    """
    Rotate a refresh token.

    The onboarding gate is checked before the token is consumed so a client
    that still owes kids data can retry with the same token afterwards.
    """
    row = token_ledger.find_valid(db, raw_token)
    if not row:
        raise InvalidTokenError("Invalid or expired refresh token")

    user = db.query(User).filter(User.id == row.user_id).first()
    if not user:
        raise InvalidTokenError("User not found", ErrorCode.AUTH_ACCOUNT_NOT_FOUND)

    if user.status != "active":
        raise AccountInactiveError(user.status)

    if user.role in settings.kids_data_required_roles and not user.kids_data_completed:
        raise PreconditionRequiredError("Kids data must be submitted before continuing")

    if not token_ledger.redeem(db, row.id):
        # Someone else rotated this token between our read and our write.
        raise InvalidTokenError("Invalid or expired refresh token")

    return _auth_response(db, user, user_agent=user_agent, ip_address=ip_address)


def logout(db: Session, raw_token: Optional[str]) -> None:
    if raw_token:
        token_ledger.revoke_by_hash(db, raw_token)


def revoke_all_user_tokens(db: Session, user_id: UUID) -> int:
    count = token_ledger.revoke_all_for_user(db, user_id)
    logger.info("Revoked refresh tokens", extra={"extra_fields": {"user_id": str(user_id), "count": count}})
    return count


def change_password(db: Session, user: User, *, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise InvalidCredentialsError("Current password is incorrect")
    _check_password_policy(new_password)
    users_service.update_password(db, user, new_password)
    revoke_all_user_tokens(db, user.id)
