"""
Credential store.

All writes to the lockout counters are single UPDATE statements so that
concurrent failed logins cannot lose increments.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core import clock
from core.config import settings
from core.exceptions import ConflictError, NotFoundError
from core.security import get_password_hash
from models import User
from services import token_ledger

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_user(db: Session, user_id: UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User", user_id)
    return user


def find_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    name: str,
    phone: Optional[str] = None,
    role: str = "client",
) -> User:
    email = normalize_email(email)
    if find_by_email(db, email):
        raise ConflictError("User with this email already exists")

    user = User(
        email=email,
        password_hash=get_password_hash(password),
        name=name.strip(),
        phone=phone,
        role=role,
        status="active",
        failed_login_attempts=0,
        kids_data_completed=False,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        # Lost a race against a concurrent registration of the same address.
        db.rollback()
        raise ConflictError("User with this email already exists")
    logger.info("User created", extra={"extra_fields": {"user_id": str(user.id), "role": role}})
    return user


def list_users(
    db: Session,
    *,
    role: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[User], int]:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if status:
        query = query.filter(User.status == status)
    total = query.count()
    users = (
        query.order_by(User.created_at.desc(), User.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return users, total


def update_user(db: Session, user_id: UUID, changes: dict) -> User:
    """Apply a staff edit. Moving an account out of `active` ends its sessions."""
    user = get_user(db, user_id)
    for field, value in changes.items():
        setattr(user, field, value)
    db.flush()
    if changes.get("status") not in (None, "active"):
        revoked = token_ledger.revoke_all_for_user(db, user.id)
        logger.info(
            "Account deactivated",
            extra={"extra_fields": {"user_id": str(user.id), "status": user.status, "revoked": revoked}},
        )
    return user


def update_password(db: Session, user: User, new_password: str) -> None:
    user.password_hash = get_password_hash(new_password)
    db.flush()


def register_failed_login(db: Session, user_id: UUID) -> None:
    """
    Count one failed login and open the lockout window when the threshold is hit.

    The increment and the threshold comparison happen in one statement, so N
    concurrent failures always add exactly N.
    """
    lock_until = clock.utcnow() + timedelta(minutes=settings.LOCKOUT_DURATION_MINUTES)
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            failed_login_attempts=User.failed_login_attempts + 1,
            locked_until=case(
                (User.failed_login_attempts + 1 >= settings.MAX_FAILED_LOGIN_ATTEMPTS, lock_until),
                else_=User.locked_until,
            ),
        )
        .execution_options(synchronize_session=False)
    )


def reset_login_state(db: Session, user_id: UUID) -> None:
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(failed_login_attempts=0, locked_until=None, last_login_at=clock.utcnow())
        .execution_options(synchronize_session=False)
    )


def set_kids_data_completed(db: Session, user_id: UUID, completed: bool = True) -> None:
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(kids_data_completed=completed)
        .execution_options(synchronize_session=False)
    )
