"""
Authentication dependencies

Tokens are issued by the auth service (HS256, shared AUTH_SECRET). Here we
only verify them and resolve the account they name, so a deactivated or
deleted account stops working immediately.
"""
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from bazaar.core.config import settings
from bazaar.core.exceptions import ForbiddenError, UnauthorizedError
from bazaar.domain.account import Role, User
from bazaar.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)


def get_user_repository() -> UserRepository:
    return UserRepository()


def decode_token(token: str, secret: Optional[str] = None) -> dict:
    """
    Decode and validate a bearer token

    Expected payload:
    {
        "sub": "42",
        "role": "Vendor",
        "iat": 1234567890,
        "exp": 1234567890
    }
    """
    secret = secret or settings.AUTH_SECRET
    if not secret:
        raise UnauthorizedError("Authentication is not configured")

    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], options={"verify_aud": False})
    except ExpiredSignatureError:
        raise UnauthorizedError("Token expired - please login again")
    except JWTError:
        raise UnauthorizedError("Invalid token")


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    users: UserRepository = Depends(get_user_repository),
) -> User:
    """
    Dependency that resolves the authenticated account

    Usage:
        @router.get("/protected")
        async def protected_route(actor: User = Depends(get_current_actor)):
            ...
    """
    if not credentials:
        raise UnauthorizedError("Authentication required")

    payload = decode_token(credentials.credentials)

    user_id = payload.get("id") or payload.get("sub")
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid token payload: missing user id")

    user = users.find_by_id(user_id)
    if user is None or not user.is_active:
        logger.warning(f"Token for unknown or inactive user {user_id}")
        raise UnauthorizedError("Account not found or deactivated")

    return user


def require_role(*roles: Role):
    """
    Dependency factory for role-based access control

    Usage:
        @router.get("/vendor/sales")
        async def sales(actor: User = Depends(require_role(Role.VENDOR, Role.ADMIN))):
            ...
    """
    def role_checker(actor: User = Depends(get_current_actor)) -> User:
        if actor.role not in roles:
            raise ForbiddenError(f"Access denied - role '{actor.role.value}' is not authorised for this action")
        return actor

    return role_checker


# Convenience dependencies for common role requirements
require_admin = require_role(Role.ADMIN)
require_vendor = require_role(Role.VENDOR, Role.ADMIN)
