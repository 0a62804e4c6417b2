"""
Client profiles and coach assignment.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from core.exceptions import ConflictError, NotFoundError
from models import Client, Coach, CoachingSession
from services import users_service

logger = logging.getLogger(__name__)


def _ensure_coach(db: Session, coach_id: UUID) -> None:
    if not db.query(Coach.id).filter(Coach.id == coach_id).first():
        raise NotFoundError("Coach", coach_id)


def create(db: Session, data: dict) -> Client:
    user_id = data["user_id"]
    users_service.get_user(db, user_id)
    if db.query(Client.id).filter(Client.user_id == user_id).first():
        raise ConflictError("Client profile already exists for this user")
    if data.get("assigned_coach_id"):
        _ensure_coach(db, data["assigned_coach_id"])

    client = Client(**data)
    db.add(client)
    db.flush()
    db.refresh(client)
    logger.info("Client profile created", extra={"extra_fields": {"client_id": str(client.id)}})
    return client


def find_all(
    db: Session,
    *,
    assigned_coach_id: Optional[UUID] = None,
    tag: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Client], int]:
    query = db.query(Client)
    if assigned_coach_id:
        query = query.filter(Client.assigned_coach_id == assigned_coach_id)
    if status:
        query = query.filter(Client.status == status)

    if tag:
        clients = [
            c for c in query.order_by(Client.created_at.desc(), Client.id).all()
            if tag in (c.tags or [])
        ]
        start = (page - 1) * limit
        return clients[start:start + limit], len(clients)

    total = query.count()
    clients = (
        query.order_by(Client.created_at.desc(), Client.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return clients, total


def find_by_id(db: Session, client_id: UUID) -> Client:
    client = db.query(Client).filter(Client.id == client_id).first()
    if not client:
        raise NotFoundError("Client", client_id)
    return client


def find_by_user_id(db: Session, user_id: UUID) -> Client:
    client = db.query(Client).filter(Client.user_id == user_id).first()
    if not client:
        raise NotFoundError("Client profile")
    return client


def update(db: Session, client_id: UUID, changes: dict) -> Client:
    client = find_by_id(db, client_id)
    for field, value in changes.items():
        setattr(client, field, value)
    db.flush()
    db.refresh(client)
    return client


def assign_coach(db: Session, client_id: UUID, coach_id: UUID) -> Client:
    client = find_by_id(db, client_id)
    _ensure_coach(db, coach_id)
    client.assigned_coach_id = coach_id
    db.flush()
    db.refresh(client)
    logger.info(
        "Coach assigned",
        extra={"extra_fields": {"client_id": str(client_id), "coach_id": str(coach_id)}},
    )
    return client


def remove_coach(db: Session, client_id: UUID) -> Client:
    client = find_by_id(db, client_id)
    client.assigned_coach_id = None
    db.flush()
    db.refresh(client)
    return client


def delete(db: Session, client_id: UUID) -> None:
    client = find_by_id(db, client_id)
    if db.query(CoachingSession.id).filter(CoachingSession.client_id == client_id).first():
        raise ConflictError("Client has sessions on record and cannot be deleted")
    db.delete(client)
    db.flush()

