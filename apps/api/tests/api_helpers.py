"""
Test helpers: seed users and profiles directly through the data layer.

Each helper commits in its own session and returns a detached instance, so
callers can read attributes without holding a session open.
"""
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from core import clock
from core.database import SessionLocal
from core.security import create_access_token
from models import Client, Coach, CoachingSession, User
from services import users_service

DEFAULT_PASSWORD = "Str0ngPassw0rd"


def create_user(
    role: str = "client",
    *,
    email: Optional[str] = None,
    password: str = DEFAULT_PASSWORD,
    kids_data_completed: Optional[bool] = None,
    name: str = "Test User",
    status: str = "active",
) -> User:
    """Clients start with kids data completed unless told otherwise."""
    db = SessionLocal()
    try:
        user = users_service.create_user(
            db,
            email=email or f"{role}-{uuid4().hex[:8]}@example.com",
            password=password,
            name=name,
            role=role,
        )
        user.kids_data_completed = True if kids_data_completed is None else kids_data_completed
        user.status = status
        db.commit()
        db.refresh(user)
        db.expunge(user)
        return user
    finally:
        db.close()


def auth_headers(user: User) -> dict:
    token, _ = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role, "name": user.name}
    )
    return {"Authorization": f"Bearer {token}"}


def create_coach_profile(user: User, **overrides) -> Coach:
    overrides.setdefault("specialties", ["strength"])
    db = SessionLocal()
    try:
        coach = Coach(user_id=user.id, **overrides)
        db.add(coach)
        db.commit()
        db.refresh(coach)
        db.expunge(coach)
        return coach
    finally:
        db.close()


def create_client_profile(user: User, **overrides) -> Client:
    db = SessionLocal()
    try:
        profile = Client(user_id=user.id, **overrides)
        db.add(profile)
        db.commit()
        db.refresh(profile)
        db.expunge(profile)
        return profile
    finally:
        db.close()


def slot(hours_from_now: float, duration_minutes: int = 60, base: Optional[datetime] = None):
    """(starts_at, ends_at) for a session starting `hours_from_now` hours after `base`."""
    base = base or clock.utcnow().replace(minute=0, second=0, microsecond=0)
    starts_at = base + timedelta(hours=hours_from_now)
    return starts_at, starts_at + timedelta(minutes=duration_minutes)


def insert_session(client_id, coach_id, starts_at, ends_at, status: str = "scheduled", **fields) -> CoachingSession:
    """Insert a session row bypassing the overlap check (for fixtures only)."""
    db = SessionLocal()
    try:
        session = CoachingSession(
            client_id=client_id,
            coach_id=coach_id,
            starts_at=starts_at,
            ends_at=ends_at,
            status=status,
            **fields,
        )
        db.add(session)
        db.commit()
        db.refresh(session)
        db.expunge(session)
        return session
    finally:
        db.close()
