"""
Authentication Routes (staff users)

POST /auth/login - Login and get JWT token
GET /auth/me - Get current user info
POST /auth/reset-password - Email a password reset link
POST /auth/reset-password/confirm - Set a new password with the emailed token
"""

import logging
import secrets
from datetime import datetime, timedelta

from fastapi import APIRouter, HTTPException, Depends

from talent_portal.core.auth import verify_password, hash_password, create_access_token, get_current_user
from talent_portal.core.config import get_settings
from talent_portal.core.rate_limit import rate_limited
from talent_portal.services.mongo_service import UserService
from talent_portal.services.email_service import send_quietly
from talent_portal.schemas.schemas import (
    LoginRequest, TokenResponse, ResetPasswordRequest, ResetPasswordConfirm, MessageResponse
)

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

RESET_TOKEN_HOURS = 1


@router.post("/login", response_model=TokenResponse, dependencies=[Depends(rate_limited("auth"))])
async def login(request: LoginRequest):
    """
    Login and receive JWT access token.

    Include token in requests: Authorization: Bearer <token>
    """
    user = UserService().find_by_email(request.email)

    if not user or not user.get("passwordHash") or not verify_password(request.password, user["passwordHash"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not user.get("isActive", True):
        raise HTTPException(status_code=403, detail="Account deactivated")

    token = create_access_token(data={"sub": user["id"], "role": user["role"]})
    logger.info(f"Login: user={user['id']} role={user['role']}")
    return TokenResponse(access_token=token, user_id=user["id"], role=user["role"])


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    """Get current authenticated user's info."""
    return user


@router.post("/reset-password", response_model=MessageResponse, dependencies=[Depends(rate_limited("auth"))])
async def reset_password(request: ResetPasswordRequest):
    """
    Always answers success so the endpoint does not reveal which emails are registered.
    When the user exists a one-hour reset token is stored and emailed.
    """
    users = UserService()
    user = users.find_by_email(request.email)

    if user:
        token = secrets.token_urlsafe(32)
        users.update(user["id"], {
            "resetToken": token,
            "resetTokenExpiry": datetime.utcnow() + timedelta(hours=RESET_TOKEN_HOURS)
        })
        send_quietly(
            user["email"], "password_reset",
            nombre=user.get("displayName") or "",
            reset_url=f"{settings.public_base_url}/reset-password?token={token}"
        )
        logger.info(f"Password reset requested for user {user['id']}")

    return MessageResponse(message="Si el correo existe, recibirás un enlace para restablecer tu contraseña")


@router.post("/reset-password/confirm", response_model=MessageResponse,
             dependencies=[Depends(rate_limited("auth"))])
async def confirm_reset_password(request: ResetPasswordConfirm):
    """Consume a reset token (single use, one hour) and set the new password."""
    user_id = UserService().reset_password(request.token, hash_password(request.password))
    logger.info(f"Password reset completed for user {user_id}")
    return MessageResponse(message="Contraseña actualizada")
