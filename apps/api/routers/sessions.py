"""
Coaching session endpoints.

Booking, rescheduling, cancellation and feedback. Clients and coaches are
scoped to the sessions of their own profile; admin and team see everything.
"""
from datetime import datetime
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Literal, Optional, Tuple
from uuid import UUID

from core.database import get_db
from core.exceptions import ForbiddenError, NotFoundError, ValidationError
from core.permissions import require_operation
from core.responses import ok, paginate_meta
from models import CoachingSession, User
from schemas import (
    AvailabilityResponse,
    CancelSessionRequest,
    CheckAvailabilityRequest,
    SessionCreate,
    SessionFeedbackRequest,
    SessionResponse,
    SessionStats,
    SessionStatus,
    SessionUpdate,
)
from services import clients_service, coaches_service, session_booking

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _caller_scope(db: Session, user: User) -> Tuple[Optional[UUID], Optional[UUID]]:
    """(client_id, coach_id) the caller is restricted to; (None, None) for staff."""
    if user.role == "client":
        return clients_service.find_by_user_id(db, user.id).id, None
    if user.role == "coach":
        return None, coaches_service.find_by_user_id(db, user.id).id
    return None, None


def _ensure_participant(db: Session, user: User, session: CoachingSession) -> None:
    client_id, coach_id = _caller_scope(db, user)
    if client_id and session.client_id != client_id:
        raise ForbiddenError("Not a participant of this session")
    if coach_id and session.coach_id != coach_id:
        raise ForbiddenError("Not a participant of this session")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_session(
    payload: SessionCreate,
    current_user: User = Depends(require_operation("sessions.create")),
    db: Session = Depends(get_db),
):
    """
    Book a session.

    Fails with 409 SESS_OVERLAP when the coach already has a scheduled or
    in-progress session intersecting [starts_at, ends_at).
    """
    client_id, _ = _caller_scope(db, current_user)
    if client_id and payload.client_id != client_id:
        raise ForbiddenError("Clients can only book sessions for themselves")

    session = session_booking.create(db, **payload.model_dump())
    return ok(SessionResponse.model_validate(session))


@router.get("")
def list_sessions(
    client_id: Optional[UUID] = None,
    coach_id: Optional[UUID] = None,
    status: Optional[SessionStatus] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_operation("sessions.list")),
    db: Session = Depends(get_db),
):
    try:
        own_client_id, own_coach_id = _caller_scope(db, current_user)
    except NotFoundError:
        # No profile yet, so nothing can be booked against it
        return ok([], pagination=paginate_meta(page, limit, 0))
    sessions, total = session_booking.find_all(
        db,
        client_id=own_client_id or client_id,
        coach_id=own_coach_id or coach_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return ok(
        [SessionResponse.model_validate(s) for s in sessions],
        pagination=paginate_meta(page, limit, total),
    )


@router.get("/upcoming")
def list_upcoming_sessions(
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(require_operation("sessions.upcoming")),
    db: Session = Depends(get_db),
):
    sessions = session_booking.get_upcoming(db, current_user, limit=limit)
    return ok([SessionResponse.model_validate(s) for s in sessions])


@router.get("/stats")
def get_session_stats(
    coach_id: Optional[UUID] = None,
    period: Literal["week", "month", "year"] = "month",
    current_user: User = Depends(require_operation("sessions.stats")),
    db: Session = Depends(get_db),
):
    """Session counts and completed-session revenue for one coach over a period."""
    _, own_coach_id = _caller_scope(db, current_user)
    coach_id = own_coach_id or coach_id
    if coach_id is None:
        raise ValidationError("coach_id is required", field="coach_id")

    coaches_service.find_by_id(db, coach_id)
    return ok(SessionStats(**session_booking.get_stats(db, coach_id, period)))


@router.post("/check-availability")
def check_availability(
    payload: CheckAvailabilityRequest,
    current_user: User = Depends(require_operation("sessions.check_availability")),
    db: Session = Depends(get_db),
):
    available = session_booking.check_availability(db, payload.coach_id, payload.starts_at, payload.ends_at)
    return ok(AvailabilityResponse(available=available))


@router.get("/{session_id}")
def get_session(
    session_id: UUID,
    current_user: User = Depends(require_operation("sessions.get")),
    db: Session = Depends(get_db),
):
    session = session_booking.get_session(db, session_id)
    _ensure_participant(db, current_user, session)
    return ok(SessionResponse.model_validate(session))


@router.patch("/{session_id}")
def update_session(
    session_id: UUID,
    payload: SessionUpdate,
    current_user: User = Depends(require_operation("sessions.update")),
    db: Session = Depends(get_db),
):
    _ensure_participant(db, current_user, session_booking.get_session(db, session_id))
    session = session_booking.update(db, session_id, payload.model_dump(exclude_unset=True))
    return ok(SessionResponse.model_validate(session))


@router.post("/{session_id}/cancel")
def cancel_session(
    session_id: UUID,
    payload: CancelSessionRequest,
    current_user: User = Depends(require_operation("sessions.cancel")),
    db: Session = Depends(get_db),
):
    _ensure_participant(db, current_user, session_booking.get_session(db, session_id))
    session = session_booking.cancel(db, session_id, reason=payload.reason, actor_id=current_user.id)
    return ok(SessionResponse.model_validate(session))


@router.post("/{session_id}/feedback")
def add_session_feedback(
    session_id: UUID,
    payload: SessionFeedbackRequest,
    current_user: User = Depends(require_operation("sessions.feedback")),
    db: Session = Depends(get_db),
):
    _ensure_participant(db, current_user, session_booking.get_session(db, session_id))
    session = session_booking.add_feedback(db, session_id, rating=payload.rating, comments=payload.comments)
    return ok(SessionResponse.model_validate(session))
