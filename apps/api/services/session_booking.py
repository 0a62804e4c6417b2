"""
Session Booking Service

Owns the no-double-booking invariant: two sessions of the same coach whose
status is scheduled or in_progress never overlap on [starts_at, ends_at).

Check and insert run in the same transaction after the coach row has been
locked (SELECT ... FOR UPDATE on Postgres; on SQLite the transaction itself
was opened with BEGIN IMMEDIATE, see core/database.py). Concurrent bookings
for one coach therefore serialize, and at most one overlapping booking can
commit.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, update as sql_update
from sqlalchemy.orm import Session

from core import clock
from core.exceptions import ConflictError, ErrorCode, InvalidStateError, NotFoundError, ValidationError
from models import ACTIVE_SESSION_STATUSES, CalendarEvent, Client, Coach, CoachingSession, User

logger = logging.getLogger(__name__)

# Allowed status moves through update(). cancel() has its own gate.
TRANSITIONS: Dict[str, frozenset] = {
    "scheduled": frozenset({"in_progress", "canceled", "no_show"}),
    "in_progress": frozenset({"completed"}),
    "completed": frozenset(),
    "canceled": frozenset(),
    "no_show": frozenset(),
}


def _validate_window(starts_at: datetime, ends_at: datetime) -> Tuple[datetime, datetime]:
    starts_at, ends_at = clock.ensure_utc(starts_at), clock.ensure_utc(ends_at)
    if starts_at >= ends_at:
        raise ValidationError("Session start must be before its end", field="starts_at")
    return starts_at, ends_at


def _lock_coach(db: Session, coach_id: UUID) -> None:
    locked = db.query(Coach.id).filter(Coach.id == coach_id).with_for_update().first()
    if not locked:
        raise NotFoundError("Coach", coach_id)


def _find_conflict(
    db: Session,
    coach_id: UUID,
    starts_at: datetime,
    ends_at: datetime,
    exclude_id: Optional[UUID] = None,
) -> Optional[CoachingSession]:
    query = db.query(CoachingSession).filter(
        CoachingSession.coach_id == coach_id,
        CoachingSession.status.in_(ACTIVE_SESSION_STATUSES),
        CoachingSession.starts_at < ends_at,
        CoachingSession.ends_at > starts_at,
    )
    if exclude_id is not None:
        query = query.filter(CoachingSession.id != exclude_id)
    return query.first()


def _raise_overlap(conflict: CoachingSession) -> None:
    raise ConflictError(
        "Coach already has a session in this time slot",
        error_code=ErrorCode.SESS_OVERLAP,
        details={
            "conflicting_session_id": str(conflict.id),
            "starts_at": clock.ensure_utc(conflict.starts_at).isoformat(),
            "ends_at": clock.ensure_utc(conflict.ends_at).isoformat(),
        },
    )


def get_session(db: Session, session_id: UUID) -> CoachingSession:
    session = db.query(CoachingSession).filter(CoachingSession.id == session_id).first()
    if not session:
        raise NotFoundError("Session", session_id)
    return session


def create(
    db: Session,
    *,
    client_id: UUID,
    coach_id: UUID,
    starts_at: datetime,
    ends_at: datetime,
    location: Optional[str] = None,
    notes: Optional[str] = None,
    session_type: Optional[str] = None,
    price=None,
    tags: Optional[List[str]] = None,
) -> CoachingSession:
    starts_at, ends_at = _validate_window(starts_at, ends_at)

    if not db.query(Client.id).filter(Client.id == client_id).first():
        raise NotFoundError("Client", client_id)

    _lock_coach(db, coach_id)
    conflict = _find_conflict(db, coach_id, starts_at, ends_at)
    if conflict:
        _raise_overlap(conflict)

    session = CoachingSession(
        client_id=client_id,
        coach_id=coach_id,
        starts_at=starts_at,
        ends_at=ends_at,
        status="scheduled",
        location=location,
        notes=notes,
        session_type=session_type,
        price=price,
        tags=tags or [],
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info(
        "Session booked",
        extra={"extra_fields": {"session_id": str(session.id), "coach_id": str(coach_id)}},
    )
    return session


def check_availability(db: Session, coach_id: UUID, starts_at: datetime, ends_at: datetime) -> bool:
    starts_at, ends_at = _validate_window(starts_at, ends_at)
    return _find_conflict(db, coach_id, starts_at, ends_at) is None


def update(db: Session, session_id: UUID, changes: dict) -> CoachingSession:
    """
    Patch a session.

    A reschedule re-runs the overlap check against the coach's other active
    sessions under the coach lock. A status change has to follow TRANSITIONS.
    """
    session = get_session(db, session_id)

    new_status = changes.pop("status", None)
    if new_status is not None and new_status != session.status:
        if new_status not in TRANSITIONS.get(session.status, frozenset()):
            raise InvalidStateError(
                f"Cannot move session from {session.status} to {new_status}",
                ErrorCode.SESS_INVALID_TRANSITION,
            )

    if "starts_at" in changes or "ends_at" in changes:
        starts_at, ends_at = _validate_window(
            changes.get("starts_at") or session.starts_at,
            changes.get("ends_at") or session.ends_at,
        )
        changes["starts_at"], changes["ends_at"] = starts_at, ends_at
        target_status = new_status or session.status
        if target_status in ACTIVE_SESSION_STATUSES:
            _lock_coach(db, session.coach_id)
            conflict = _find_conflict(db, session.coach_id, starts_at, ends_at, exclude_id=session.id)
            if conflict:
                _raise_overlap(conflict)

    for field, value in changes.items():
        setattr(session, field, value)
    if new_status is not None:
        session.status = new_status
        if new_status == "canceled" and session.canceled_at is None:
            session.canceled_at = clock.utcnow()

    db.commit()
    db.refresh(session)
    return session


def cancel(db: Session, session_id: UUID, *, reason: str, actor_id: UUID) -> CoachingSession:
    session = get_session(db, session_id)
    if session.status == "completed":
        raise InvalidStateError("Completed sessions cannot be canceled", ErrorCode.SESS_CANNOT_CANCEL)

    session.status = "canceled"
    session.canceled_at = clock.utcnow()
    session.canceled_by = actor_id
    session.cancel_reason = reason
    # No provider sync yet; the linked event just stops being tracked.
    db.execute(
        sql_update(CalendarEvent)
        .where(CalendarEvent.session_id == session.id, CalendarEvent.is_active.is_(True))
        .values(is_active=False)
    )
    db.commit()
    db.refresh(session)
    logger.info(
        "Session canceled",
        extra={"extra_fields": {"session_id": str(session.id), "canceled_by": str(actor_id)}},
    )
    return session


def add_feedback(db: Session, session_id: UUID, *, rating: int, comments: Optional[str] = None) -> CoachingSession:
    session = get_session(db, session_id)
    if session.status != "completed":
        raise InvalidStateError("Feedback can only be added to completed sessions", ErrorCode.SESS_NOT_COMPLETED)

    # Repeated feedback overwrites the previous one.
    session.feedback_rating = rating
    session.feedback_comments = comments
    session.feedback_submitted_at = clock.utcnow()
    db.commit()
    db.refresh(session)
    return session


def find_all(
    db: Session,
    *,
    client_id: Optional[UUID] = None,
    coach_id: Optional[UUID] = None,
    status: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[CoachingSession], int]:
    query = db.query(CoachingSession)
    if client_id:
        query = query.filter(CoachingSession.client_id == client_id)
    if coach_id:
        query = query.filter(CoachingSession.coach_id == coach_id)
    if status:
        query = query.filter(CoachingSession.status == status)
    if date_from:
        query = query.filter(CoachingSession.starts_at >= clock.ensure_utc(date_from))
    if date_to:
        query = query.filter(CoachingSession.starts_at <= clock.ensure_utc(date_to))

    total = query.count()
    sessions = (
        query.order_by(CoachingSession.starts_at.asc(), CoachingSession.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return sessions, total


def get_upcoming(db: Session, user: User, limit: int = 10) -> List[CoachingSession]:
    query = db.query(CoachingSession).filter(
        CoachingSession.starts_at >= clock.utcnow(),
        CoachingSession.status == "scheduled",
    )
    if user.role == "client":
        client = db.query(Client).filter(Client.user_id == user.id).first()
        if not client:
            return []
        query = query.filter(CoachingSession.client_id == client.id)
    elif user.role == "coach":
        coach = db.query(Coach).filter(Coach.user_id == user.id).first()
        if not coach:
            return []
        query = query.filter(CoachingSession.coach_id == coach.id)

    return query.order_by(CoachingSession.starts_at.asc()).limit(limit).all()


def _period_start(period: str) -> datetime:
    """Rolling seven days for a week; calendar month or year to date otherwise."""
    now = clock.utcnow()
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if period == "year":
        return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    raise ValidationError(f"Unknown period: {period}", field="period")


def get_stats(db: Session, coach_id: UUID, period: str = "month") -> dict:
    since = _period_start(period)

    rows = (
        db.query(CoachingSession.status, func.count(CoachingSession.id), func.sum(CoachingSession.price))
        .filter(CoachingSession.coach_id == coach_id, CoachingSession.starts_at >= since)
        .group_by(CoachingSession.status)
        .all()
    )
    counts = {status: count for status, count, _ in rows}
    revenue = sum(float(total or 0) for status, _, total in rows if status == "completed")
    return {
        "total": sum(counts.values()),
        "completed": counts.get("completed", 0),
        "canceled": counts.get("canceled", 0),
        "no_show": counts.get("no_show", 0),
        "revenue": round(revenue, 2),
    }
