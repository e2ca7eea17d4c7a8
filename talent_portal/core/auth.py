"""
Authentication Utility - JWT and Password handling.

Provides:
- Password hashing with bcrypt
- JWT token creation/verification for staff users
- FastAPI dependencies for protected routes and role checks
"""

from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from talent_portal.core.config import get_settings
from talent_portal.services.mongo_service import UserService

settings = get_settings()

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token extractor
bearer_scheme = HTTPBearer()

STAFF_ROLES = ("super_admin", "admin", "jefe_marca", "supervisor", "store_manager", "recruiter")
ADMIN_ROLES = ("super_admin", "admin")


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> dict:
    """
    FastAPI dependency - Get current authenticated staff user.

    Usage:
        @app.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(credentials.credentials)
    if not payload:
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception

    user = UserService().find_by_id(user_id)
    if not user:
        raise credentials_exception

    if not user.get("isActive", True):
        raise HTTPException(status_code=403, detail="Account deactivated")

    return {
        "user_id": user["id"],
        "email": user.get("email", ""),
        "role": user.get("role", ""),
        "displayName": user.get("displayName") or user.get("email", ""),
        "holdingId": user.get("holdingId"),
        "assignedMarca": user.get("assignedMarca"),
        "assignedStore": user.get("assignedStore"),
        "assignedStores": user.get("assignedStores", []),
    }


def require_roles(*roles: str):
    """
    Dependency factory - allow only the given roles.
    super_admin always passes.
    """
    async def dependency(user: dict = Depends(get_current_user)) -> dict:
        if user["role"] != "super_admin" and user["role"] not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


require_admin = require_roles(*ADMIN_ROLES)
require_recruiter = require_roles("admin", "recruiter", "jefe_marca", "supervisor")
require_staff = require_roles(*STAFF_ROLES)
