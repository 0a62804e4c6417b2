"""
Request authentication.

get_current_user resolves the bearer access token to an active User; every
protected route depends on it, directly or through require_operation.
"""
from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import AccountInactiveError, ErrorCode, InvalidTokenError
from core.security import TokenExpired, decode_access_token
from models import User

# auto_error=False: a missing header must be a 401 envelope, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise InvalidTokenError("No authentication token provided")

    try:
        claims = decode_access_token(credentials.credentials)
    except TokenExpired:
        raise InvalidTokenError("Authentication token has expired", ErrorCode.AUTH_TOKEN_EXPIRED)
    if not claims or not claims.get("sub"):
        raise InvalidTokenError("Invalid authentication token")

    try:
        user_id = UUID(str(claims["sub"]))
    except ValueError:
        raise InvalidTokenError("Invalid authentication token")

    user = db.get(User, user_id)
    if user is None:
        raise InvalidTokenError("User not found", ErrorCode.AUTH_ACCOUNT_NOT_FOUND)
    if user.status != "active":
        raise AccountInactiveError(user.status)
    return user


def is_staff(user: User) -> bool:
    return user.role in ("admin", "team")
