"""
Coach profiles.

One profile per user. The KPI cache is only written by update_kpis_cache(),
which the aggregation job calls; everything here reads it as-is.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from core import clock
from core.exceptions import ConflictError, NotFoundError
from models import Coach, CoachingSession
from services import users_service

logger = logging.getLogger(__name__)

EMPTY_KPIS = {
    "total_sessions": 0,
    "total_clients": 0,
    "average_rating": 0.0,
    "total_earnings": 0.0,
}


def create(db: Session, data: dict) -> Coach:
    user_id = data["user_id"]
    users_service.get_user(db, user_id)
    if db.query(Coach.id).filter(Coach.user_id == user_id).first():
        raise ConflictError("Coach profile already exists for this user")

    coach = Coach(**data)
    db.add(coach)
    db.flush()
    db.refresh(coach)
    logger.info("Coach profile created", extra={"extra_fields": {"coach_id": str(coach.id)}})
    return coach


def find_all(
    db: Session,
    *,
    specialty: Optional[str] = None,
    status: Optional[str] = None,
    accepting_new_clients: Optional[bool] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Coach], int]:
    query = db.query(Coach)
    if status:
        query = query.filter(Coach.status == status)
    if accepting_new_clients is not None:
        query = query.filter(Coach.accepting_new_clients.is_(accepting_new_clients))

    if specialty:
        # JSON list membership differs per backend; filter in Python.
        coaches = [
            c for c in query.order_by(Coach.created_at.desc(), Coach.id).all()
            if specialty in (c.specialties or [])
        ]
        start = (page - 1) * limit
        return coaches[start:start + limit], len(coaches)

    total = query.count()
    coaches = (
        query.order_by(Coach.created_at.desc(), Coach.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return coaches, total


def find_by_id(db: Session, coach_id: UUID) -> Coach:
    coach = db.query(Coach).filter(Coach.id == coach_id).first()
    if not coach:
        raise NotFoundError("Coach", coach_id)
    return coach


def find_by_user_id(db: Session, user_id: UUID) -> Coach:
    coach = db.query(Coach).filter(Coach.user_id == user_id).first()
    if not coach:
        raise NotFoundError("Coach profile")
    return coach


def update(db: Session, coach_id: UUID, changes: dict) -> Coach:
    coach = find_by_id(db, coach_id)
    for field, value in changes.items():
        setattr(coach, field, value)
    db.flush()
    db.refresh(coach)
    return coach


def update_kpis_cache(db: Session, coach_id: UUID, kpis: dict) -> Coach:
    coach = find_by_id(db, coach_id)
    merged = dict(EMPTY_KPIS)
    merged.update({k: v for k, v in kpis.items() if k in EMPTY_KPIS})
    merged["last_updated"] = clock.utcnow().isoformat()
    coach.kpis_cache = merged
    db.flush()
    return coach


def delete(db: Session, coach_id: UUID) -> None:
    coach = find_by_id(db, coach_id)
    if db.query(CoachingSession.id).filter(CoachingSession.coach_id == coach_id).first():
        raise ConflictError("Coach has sessions on record and cannot be deleted")
    db.delete(coach)
    db.flush()


def get_available(db: Session) -> List[Coach]:
    return (
        db.query(Coach)
        .filter(Coach.status == "active", Coach.accepting_new_clients.is_(True))
        .order_by(Coach.created_at.desc(), Coach.id)
        .all()
    )


def get_stats(db: Session, coach_id: UUID) -> dict:
    coach = find_by_id(db, coach_id)
    kpis = coach.kpis_cache or {}
    return {key: kpis.get(key, default) for key, default in EMPTY_KPIS.items()}
