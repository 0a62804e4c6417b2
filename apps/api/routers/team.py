"""
Team operations.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import get_db
from core.permissions import require_operation
from core.responses import ok
from models import User
from schemas import AssignCoachRequest, ClientResponse
from services import clients_service

router = APIRouter(prefix="/team", tags=["team"])


@router.post("/assign-coach")
def assign_coach(
    payload: AssignCoachRequest,
    current_user: User = Depends(require_operation("team.assign_coach")),
    db: Session = Depends(get_db),
):
    """Assign a coach to a client on behalf of the team."""
    client = clients_service.assign_coach(db, payload.client_id, payload.coach_id)
    return ok(ClientResponse.model_validate(client))
