"""
Calendar integration endpoints.

Connect and sync are placeholders until provider OAuth is wired; the
consent URL and its signed state are real.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Literal
from uuid import UUID

from core.database import get_db
from core.permissions import require_operation
from core.responses import ok
from models import User
from schemas import CalendarAccountResponse, CalendarAuthUrlResponse, CalendarConnectRequest
from services import calendar_service

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.post("/connect")
def connect_calendar(
    payload: CalendarConnectRequest,
    current_user: User = Depends(require_operation("calendar.connect")),
    db: Session = Depends(get_db),
):
    account = calendar_service.connect(
        db,
        current_user,
        provider=payload.provider,
        calendar_id=payload.calendar_id,
    )
    return ok(CalendarAccountResponse.model_validate(account))


@router.post("/sync")
def sync_calendar(
    user_id: UUID = Query(..., alias="userId"),
    current_user: User = Depends(require_operation("calendar.sync")),
    db: Session = Depends(get_db),
):
    synced = calendar_service.sync(db, user_id)
    return ok({"user_id": str(user_id), "synced_accounts": synced})


@router.get("/auth-url")
def get_auth_url(
    provider: Literal["google"] = "google",
    current_user: User = Depends(require_operation("calendar.auth_url")),
):
    auth_url, state = calendar_service.build_auth_url(current_user, provider)
    return ok(CalendarAuthUrlResponse(auth_url=auth_url, state=state))
