"""
Per-operation role table.

Each routed operation is named ("sessions.create") and mapped to the roles
allowed to call it. require_operation() is the single dependency that
enforces the table. An operation with no entry is open to any
authenticated caller.
"""
from typing import Dict, FrozenSet, Optional

from fastapi import Depends

from core.auth import get_current_user
from core.exceptions import ForbiddenError
from models import User

ADMIN = "admin"
TEAM = "team"
COACH = "coach"
CLIENT = "client"

STAFF = frozenset({ADMIN, TEAM})
ALL_ROLES = frozenset({ADMIN, TEAM, COACH, CLIENT})

ROUTE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    # users
    "users.list": STAFF,
    "users.get": STAFF,
    "users.update": STAFF,
    # clients
    "clients.create": STAFF,
    "clients.list": STAFF | {COACH},
    "clients.my_profile": frozenset({CLIENT}),
    "clients.get": ALL_ROLES,
    "clients.update": STAFF | {CLIENT},
    "clients.assign_coach": STAFF,
    "clients.remove_coach": STAFF,
    "clients.delete": STAFF,
    # coaches
    "coaches.create": STAFF,
    "coaches.list": STAFF | {CLIENT},
    "coaches.available": STAFF | {CLIENT},
    "coaches.my_profile": frozenset({COACH}),
    "coaches.get": ALL_ROLES,
    "coaches.stats": STAFF | {COACH},
    "coaches.update": STAFF | {COACH},
    "coaches.delete": STAFF,
    # sessions
    "sessions.create": STAFF | {CLIENT},
    "sessions.list": ALL_ROLES,
    "sessions.upcoming": ALL_ROLES,
    "sessions.stats": STAFF | {COACH},
    "sessions.check_availability": STAFF | {CLIENT},
    "sessions.get": ALL_ROLES,
    "sessions.update": STAFF | {COACH},
    "sessions.cancel": ALL_ROLES,
    "sessions.feedback": frozenset({CLIENT}),
    # team
    "team.assign_coach": STAFF,
    # calendar
    "calendar.connect": STAFF | {COACH},
    "calendar.sync": STAFF,
    "calendar.auth_url": STAFF | {COACH},
}


def check_role(role: str, allowed: Optional[FrozenSet[str]]) -> bool:
    """True iff `role` may call an operation whose allow-set is `allowed`."""
    if allowed is None:
        return True
    return role in allowed


def require_operation(operation: str):
    """
    Dependency factory guarding a routed operation.

    Usage:
        @router.post("")
        def create(user: User = Depends(require_operation("sessions.create"))):
            ...
    """
    allowed = ROUTE_PERMISSIONS.get(operation)

    def operation_checker(current_user: User = Depends(get_current_user)) -> User:
        if not check_role(current_user.role, allowed):
            raise ForbiddenError(f"Role '{current_user.role}' may not perform {operation}")
        return current_user

    operation_checker.operation = operation
    return operation_checker
