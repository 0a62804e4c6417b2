"""
Kids onboarding endpoints.

Parents register their children here; the first successful create marks the
parent's kids data as completed, which unblocks token refresh for roles that
require it.
"""
from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from typing import Any, List, Optional
from uuid import UUID

from core.auth import is_staff
from core.database import get_db
from core.exceptions import ForbiddenError, ValidationError
from core.permissions import require_operation
from core.responses import ok
from models import User
from schemas import KidBulkCreateSummary, KidCreate, KidResponse, KidUpdate
from services import kids_service
from services.kids_service import MAX_KIDS_PER_REQUEST

router = APIRouter(prefix="/kids", tags=["kids"])


def _parse_entries(body: Any) -> tuple[List[KidCreate], bool]:
    """
    Accept a single kid, a list of kids, or {"kids": [...]}.

    Returns (entries, is_bulk). Validation errors carry the offending index.
    """
    if isinstance(body, dict) and "kids" in body:
        raw, is_bulk = body["kids"], True
    elif isinstance(body, list):
        raw, is_bulk = body, True
    else:
        raw, is_bulk = [body], False

    if not isinstance(raw, list) or not raw:
        raise ValidationError("At least one kid is required", field="kids")
    if len(raw) > MAX_KIDS_PER_REQUEST:
        raise ValidationError(
            f"At most {MAX_KIDS_PER_REQUEST} kids per request",
            details={"field": "kids", "max": MAX_KIDS_PER_REQUEST, "received": len(raw)},
        )

    entries: List[KidCreate] = []
    errors = []
    for index, item in enumerate(raw):
        try:
            entries.append(KidCreate.model_validate(item))
        except PydanticValidationError as e:
            errors.extend(
                {"index": index, "loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in e.errors()
            )
    if errors:
        raise ValidationError("Invalid kid data", details=errors)
    return entries, is_bulk


@router.post("", status_code=status.HTTP_201_CREATED)
def create_kids(
    body: Any = Body(...),
    current_user: User = Depends(require_operation("kids.create")),
    db: Session = Depends(get_db),
):
    entries, is_bulk = _parse_entries(body)
    kids = kids_service.create_many(db, current_user.id, [entry.model_dump() for entry in entries])

    if not is_bulk:
        return ok(KidResponse.model_validate(kids[0]))
    created = [KidResponse.model_validate(kid) for kid in kids]
    return ok(KidBulkCreateSummary(created=created, count=len(created)))


@router.get("")
def list_kids(
    parent_id: Optional[UUID] = Query(None, alias="parentId"),
    current_user: User = Depends(require_operation("kids.list")),
    db: Session = Depends(get_db),
):
    """List the caller's kids. Admin and team may pass another parentId."""
    if parent_id and parent_id != current_user.id and not is_staff(current_user):
        raise ForbiddenError("Cannot list another parent's kids")

    kids = kids_service.find_by_parent(db, parent_id or current_user.id)
    return ok([KidResponse.model_validate(k) for k in kids])


@router.get("/{kid_id}")
def get_kid(
    kid_id: UUID,
    current_user: User = Depends(require_operation("kids.get")),
    db: Session = Depends(get_db),
):
    return ok(KidResponse.model_validate(kids_service.find_for_parent(db, kid_id, current_user.id)))


@router.patch("/{kid_id}")
def update_kid(
    kid_id: UUID,
    payload: KidUpdate,
    current_user: User = Depends(require_operation("kids.update")),
    db: Session = Depends(get_db),
):
    kid = kids_service.update(db, kid_id, current_user.id, payload.model_dump(exclude_unset=True))
    return ok(KidResponse.model_validate(kid))


@router.delete("/{kid_id}")
def delete_kid(
    kid_id: UUID,
    current_user: User = Depends(require_operation("kids.delete")),
    db: Session = Depends(get_db),
):
    kids_service.delete(db, kid_id, current_user.id)
    return ok({"message": "Kid deleted"})
