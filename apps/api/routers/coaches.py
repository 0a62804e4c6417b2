"""
Coach profile endpoints.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from core.auth import is_staff
from core.database import get_db
from core.exceptions import ForbiddenError
from core.permissions import require_operation
from core.responses import ok, paginate_meta
from models import Coach, User
from schemas import CoachCreate, CoachResponse, CoachStats, CoachUpdate, ProfileStatus
from services import coaches_service

router = APIRouter(prefix="/coaches", tags=["coaches"])


def _ensure_own_profile(current_user: User, coach: Coach) -> None:
    if current_user.role == "coach" and coach.user_id != current_user.id:
        raise ForbiddenError("Coaches can only access their own profile")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_coach(
    payload: CoachCreate,
    current_user: User = Depends(require_operation("coaches.create")),
    db: Session = Depends(get_db),
):
    coach = coaches_service.create(db, payload.model_dump())
    return ok(CoachResponse.model_validate(coach))


@router.get("")
def list_coaches(
    specialty: Optional[str] = None,
    status: Optional[ProfileStatus] = None,
    accepting_new_clients: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_operation("coaches.list")),
    db: Session = Depends(get_db),
):
    coaches, total = coaches_service.find_all(
        db,
        specialty=specialty,
        status=status,
        accepting_new_clients=accepting_new_clients,
        page=page,
        limit=limit,
    )
    return ok(
        [CoachResponse.model_validate(c) for c in coaches],
        pagination=paginate_meta(page, limit, total),
    )


@router.get("/available")
def list_available_coaches(
    current_user: User = Depends(require_operation("coaches.available")),
    db: Session = Depends(get_db),
):
    """Active coaches accepting new clients."""
    return ok([CoachResponse.model_validate(c) for c in coaches_service.get_available(db)])


@router.get("/my-profile")
def get_my_profile(
    current_user: User = Depends(require_operation("coaches.my_profile")),
    db: Session = Depends(get_db),
):
    return ok(CoachResponse.model_validate(coaches_service.find_by_user_id(db, current_user.id)))


@router.get("/{coach_id}")
def get_coach(
    coach_id: UUID,
    current_user: User = Depends(require_operation("coaches.get")),
    db: Session = Depends(get_db),
):
    return ok(CoachResponse.model_validate(coaches_service.find_by_id(db, coach_id)))


@router.get("/{coach_id}/stats")
def get_coach_stats(
    coach_id: UUID,
    current_user: User = Depends(require_operation("coaches.stats")),
    db: Session = Depends(get_db),
):
    """KPIs as of the last nightly refresh."""
    _ensure_own_profile(current_user, coaches_service.find_by_id(db, coach_id))
    return ok(CoachStats(**coaches_service.get_stats(db, coach_id)))


@router.patch("/{coach_id}")
def update_coach(
    coach_id: UUID,
    payload: CoachUpdate,
    current_user: User = Depends(require_operation("coaches.update")),
    db: Session = Depends(get_db),
):
    _ensure_own_profile(current_user, coaches_service.find_by_id(db, coach_id))

    changes = payload.model_dump(exclude_unset=True)
    if not is_staff(current_user):
        changes.pop("status", None)
    coach = coaches_service.update(db, coach_id, changes)
    return ok(CoachResponse.model_validate(coach))


@router.delete("/{coach_id}")
def delete_coach(
    coach_id: UUID,
    current_user: User = Depends(require_operation("coaches.delete")),
    db: Session = Depends(get_db),
):
    coaches_service.delete(db, coach_id)
    return ok({"message": "Coach deleted"})
