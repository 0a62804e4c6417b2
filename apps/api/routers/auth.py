"""
Authentication API endpoints.

Provides:
- User registration
- Login (JWT access token + rotating refresh token)
- Token refresh (rotation on use)
- Logout and password change (revoke refresh tokens)
- Password reset placeholders
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
import logging

from core.auth import get_current_user
from core.database import get_db
from core.responses import ok
from models import User
from schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
)
from services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _client_info(request: Request) -> dict:
    return {
        "user_agent": request.headers.get("user-agent"),
        "ip_address": request.client.host if request.client else None,
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Register a new account and sign it in.

    Self-registration can create coach or client accounts only.
    """
    result = auth_service.register(
        db,
        email=payload.email,
        password=payload.password,
        name=payload.name,
        phone=payload.phone,
        role=payload.role,
        **_client_info(request),
    )
    return ok(result)


@router.post("/login")
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Authenticate with email and password.

    Locks the account for LOCKOUT_DURATION_MINUTES after
    MAX_FAILED_LOGIN_ATTEMPTS consecutive failures.
    """
    result = auth_service.login(db, email=payload.email, password=payload.password, **_client_info(request))
    return ok(result)


@router.post("/refresh")
def refresh(
    payload: RefreshRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """Exchange a refresh token for a new token pair. The presented token is revoked."""
    result = auth_service.refresh(db, payload.refresh_token, **_client_info(request))
    return ok(result)


@router.post("/logout")
def logout(
    payload: LogoutRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    auth_service.logout(db, payload.refresh_token)
    return ok({"message": "Logged out"})


@router.get("/me")
def get_current_user_info(current_user: User = Depends(get_current_user)):
    return ok(UserResponse.model_validate(current_user))


@router.post("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Change password and sign out every other device."""
    auth_service.change_password(
        db,
        current_user,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )
    return ok({"message": "Password changed"})


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordRequest):
    """
    Request a password reset email.

    Email dispatch is not wired yet. Always returns success to prevent
    email enumeration.
    """
    logger.info("Password reset requested")
    return ok({"message": "If an account with that email exists, a password reset link has been sent."})


@router.post("/reset-password")
def reset_password(payload: ResetPasswordRequest):
    """Accepted and ignored until forgot-password issues reset tokens."""
    return ok()
