"""
FastAPI Dependencies

Provides dependency injection for database sessions, authentication,
and authorization.

SECURITY NOTES:
- JWT payloads are never logged
- Bearer token is the primary auth method (mobile-app friendly, no CSRF needed)
- Session cookies are supported but Bearer is preferred
"""

from typing import Annotated
from fastapi import Depends, Cookie
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from jose import JWTError, jwt
import bcrypt
from datetime import datetime, timedelta, timezone
import logging

from agri_rental.database import get_db
from agri_rental.config import settings
from agri_rental.exceptions import ForbiddenError, UnauthorizedError
from agri_rental.models.user import User
from agri_rental.schemas.auth import TokenData
from agri_rental.security.rbac import Permission, require_farmer, require_permission

logger = logging.getLogger(__name__)


# HTTP Bearer for JWT - primary auth method
security = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return bcrypt.checkpw(
        plain_password.encode('utf-8'),
        hashed_password.encode('utf-8')
    )


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt()
    ).decode('utf-8')


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
    session_token: Annotated[str | None, Cookie(alias="session")] = None,
) -> User:
    """
    Get current user from JWT token or session cookie.

    SECURITY:
    - Bearer token is preferred (no CSRF vulnerability)
    - JWT payloads are NOT logged to prevent credential leakage
    """
    token = None
    auth_method = None

    if credentials:
        token = credentials.credentials
        auth_method = "bearer"
    elif session_token:
        token = session_token
        auth_method = "cookie"

    if not token:
        raise UnauthorizedError()

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        sub = payload.get("sub")
        if sub is None:
            raise UnauthorizedError()
        token_data = TokenData(user_id=int(sub), email=payload.get("email"))
    except JWTError:
        logger.warning("JWT validation failed", extra={"auth_method": auth_method})
        raise UnauthorizedError()
    except ValueError:
        logger.warning("Invalid token format", extra={"auth_method": auth_method})
        raise UnauthorizedError()

    result = await db.execute(select(User).where(User.id == token_data.user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise UnauthorizedError()
    if not user.is_active:
        raise ForbiddenError("User account is disabled")

    logger.debug("User authenticated", extra={"user_id": user.id, "auth_method": auth_method})
    return user


async def get_current_farmer(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    require_farmer(current_user)
    return current_user


# Type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
FarmerUser = Annotated[User, Depends(get_current_farmer)]


def permission_required(permission: Permission):
    """Dependency that resolves the current user and demands ``permission``."""

    async def checker(current_user: CurrentUser) -> User:
        require_permission(current_user, permission)
        return current_user

    return checker


EquipmentManager = Annotated[User, Depends(permission_required(Permission.MANAGE_EQUIPMENT))]
AvailabilityManager = Annotated[User, Depends(permission_required(Permission.MANAGE_AVAILABILITY))]
RentalReviewer = Annotated[User, Depends(permission_required(Permission.REVIEW_RENTALS))]
CredentialVerifier = Annotated[User, Depends(permission_required(Permission.VERIFY_CREDENTIALS))]
