"""
Kids profiles.

Kids belong to the parent user who created them. Creating the first kid
completes the parent's onboarding gate (users.kids_data_completed).
"""
from __future__ import annotations

import logging
from typing import List
from uuid import UUID

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from models import Kid
from services import users_service

logger = logging.getLogger(__name__)

MAX_KIDS_PER_REQUEST = 10


def create(db: Session, parent_id: UUID, data: dict) -> Kid:
    return create_many(db, parent_id, [data])[0]


def create_many(db: Session, parent_id: UUID, entries: List[dict]) -> List[Kid]:
    kids = [Kid(parent_id=parent_id, **entry) for entry in entries]
    db.add_all(kids)
    users_service.set_kids_data_completed(db, parent_id, True)
    db.flush()
    for kid in kids:
        db.refresh(kid)
    logger.info(
        "Kids created",
        extra={"extra_fields": {"parent_id": str(parent_id), "count": len(kids)}},
    )
    return kids


def find_by_parent(db: Session, parent_id: UUID) -> List[Kid]:
    return (
        db.query(Kid)
        .filter(Kid.parent_id == parent_id)
        .order_by(Kid.created_at.asc(), Kid.id)
        .all()
    )


def find_for_parent(db: Session, kid_id: UUID, parent_id: UUID) -> Kid:
    """A kid that is missing and a kid of another parent look the same."""
    kid = db.query(Kid).filter(Kid.id == kid_id, Kid.parent_id == parent_id).first()
    if not kid:
        raise NotFoundError("Kid", kid_id)
    return kid


def update(db: Session, kid_id: UUID, parent_id: UUID, changes: dict) -> Kid:
    kid = find_for_parent(db, kid_id, parent_id)
    for field, value in changes.items():
        setattr(kid, field, value)
    db.flush()
    db.refresh(kid)
    return kid


def delete(db: Session, kid_id: UUID, parent_id: UUID) -> None:
    kid = find_for_parent(db, kid_id, parent_id)
    db.delete(kid)
    db.flush()
