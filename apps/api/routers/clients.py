"""
Client profile endpoints.

Clients can read and edit their own profile; staff manage every profile
and coach assignment.
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
from models import Client, User
from schemas import AssignCoachRequest, ClientCreate, ClientResponse, ClientUpdate, ProfileStatus
from services import clients_service, coaches_service

router = APIRouter(prefix="/clients", tags=["clients"])


def _ensure_own_profile(current_user: User, client: Client) -> None:
    if current_user.role == "client" and client.user_id != current_user.id:
        raise ForbiddenError("Clients can only access their own profile")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreate,
    current_user: User = Depends(require_operation("clients.create")),
    db: Session = Depends(get_db),
):
    client = clients_service.create(db, payload.model_dump())
    return ok(ClientResponse.model_validate(client))


@router.get("")
def list_clients(
    assigned_coach_id: Optional[UUID] = None,
    tag: Optional[str] = None,
    status: Optional[ProfileStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_operation("clients.list")),
    db: Session = Depends(get_db),
):
    """
    List client profiles.

    Coaches only ever see the clients assigned to them.
    """
    if current_user.role == "coach":
        assigned_coach_id = coaches_service.find_by_user_id(db, current_user.id).id

    clients, total = clients_service.find_all(
        db,
        assigned_coach_id=assigned_coach_id,
        tag=tag,
        status=status,
        page=page,
        limit=limit,
    )
    return ok(
        [ClientResponse.model_validate(c) for c in clients],
        pagination=paginate_meta(page, limit, total),
    )


@router.get("/my-profile")
def get_my_profile(
    current_user: User = Depends(require_operation("clients.my_profile")),
    db: Session = Depends(get_db),
):
    return ok(ClientResponse.model_validate(clients_service.find_by_user_id(db, current_user.id)))


@router.post("/assign-coach")
def assign_coach(
    payload: AssignCoachRequest,
    current_user: User = Depends(require_operation("clients.assign_coach")),
    db: Session = Depends(get_db),
):
    client = clients_service.assign_coach(db, payload.client_id, payload.coach_id)
    return ok(ClientResponse.model_validate(client))


@router.get("/{client_id}")
def get_client(
    client_id: UUID,
    current_user: User = Depends(require_operation("clients.get")),
    db: Session = Depends(get_db),
):
    client = clients_service.find_by_id(db, client_id)
    _ensure_own_profile(current_user, client)
    return ok(ClientResponse.model_validate(client))


@router.patch("/{client_id}")
def update_client(
    client_id: UUID,
    payload: ClientUpdate,
    current_user: User = Depends(require_operation("clients.update")),
    db: Session = Depends(get_db),
):
    client = clients_service.find_by_id(db, client_id)
    _ensure_own_profile(current_user, client)

    changes = payload.model_dump(exclude_unset=True)
    if not is_staff(current_user):
        # Status is an administrative field.
        changes.pop("status", None)
    client = clients_service.update(db, client_id, changes)
    return ok(ClientResponse.model_validate(client))


@router.delete("/{client_id}/coach")
def remove_coach(
    client_id: UUID,
    current_user: User = Depends(require_operation("clients.remove_coach")),
    db: Session = Depends(get_db),
):
    client = clients_service.remove_coach(db, client_id)
    return ok(ClientResponse.model_validate(client))


@router.delete("/{client_id}")
def delete_client(
    client_id: UUID,
    current_user: User = Depends(require_operation("clients.delete")),
    db: Session = Depends(get_db),
):
    clients_service.delete(db, client_id)
    return ok({"message": "Client deleted"})
