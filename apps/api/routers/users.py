"""
User administration endpoints (admin and team only).
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from core.database import get_db
from core.permissions import require_operation
from core.responses import ok, paginate_meta
from models import User
from schemas import UserResponse, UserRole, UserStatus, UserUpdate
from services import users_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
def list_users(
    role: Optional[UserRole] = None,
    status: Optional[UserStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_operation("users.list")),
    db: Session = Depends(get_db),
):
    users, total = users_service.list_users(db, role=role, status=status, page=page, limit=limit)
    return ok(
        [UserResponse.model_validate(u) for u in users],
        pagination=paginate_meta(page, limit, total),
    )


@router.get("/{user_id}")
def get_user(
    user_id: UUID,
    current_user: User = Depends(require_operation("users.get")),
    db: Session = Depends(get_db),
):
    return ok(UserResponse.model_validate(users_service.get_user(db, user_id)))


@router.patch("/{user_id}")
def update_user(
    user_id: UUID,
    payload: UserUpdate,
    current_user: User = Depends(require_operation("users.update")),
    db: Session = Depends(get_db),
):
    user = users_service.update_user(db, user_id, payload.model_dump(exclude_unset=True))
    db.refresh(user)
    return ok(UserResponse.model_validate(user))
