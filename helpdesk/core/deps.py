"""
FastAPI dependencies for authentication and authorization.

WHY: Dependencies provide reusable authentication and authorization logic
that can be injected into route handlers, so every route resolves the
actor the same way and gets the same 401/403 responses.
"""

from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.auth import verify_token
from helpdesk.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    TokenExpiredError,
    TokenInvalidError,
)
from helpdesk.dao.user import UserDAO
from helpdesk.db.session import get_db
from helpdesk.models.user import User, UserRole
from helpdesk.services.access_policy import ensure_admin
from helpdesk.services.storage import BlobStorage


# HTTP Bearer token security scheme
# Format: "Authorization: Bearer <token>"
# auto_error=False so a missing header goes through AuthenticationError (401)
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated user from JWT token.

    WHY: This dependency:
    1. Extracts token from Authorization header
    2. Verifies token signature and expiration
    3. Fetches user from database
    4. Ensures user still exists and is active

    Usage:
        @router.get("/tickets")
        async def list_tickets(user: User = Depends(get_current_user)):
            ...

    Returns:
        Authenticated User instance (the actor for access checks)

    Raises:
        AuthenticationError: If token is missing, invalid, expired, or the
            user is unknown or inactive
    """
    if credentials is None:
        raise AuthenticationError(message="Not authenticated")

    try:
        payload = verify_token(credentials.credentials)
    except (TokenExpiredError, TokenInvalidError) as e:
        # Re-raise as AuthenticationError for consistent API responses
        raise AuthenticationError(message=e.message)

    user_id = payload.get("user_id")
    if not isinstance(user_id, int):
        raise AuthenticationError(message="Invalid token: missing user_id")

    # User data in token might be stale; always fetch current data
    user = await UserDAO(db).get_by_id(user_id)

    if not user:
        raise AuthenticationError(message="User not found", user_id=user_id)

    if not user.is_active:
        raise AuthenticationError(message="User account is inactive", user_id=user_id)

    return user


def require_roles(*roles: UserRole) -> Callable:
    """
    Factory function to create a role requirement dependency.

    Usage:
        @router.post("")
        async def create(user: User = Depends(require_roles(UserRole.ADMIN, UserRole.AGENT))):
            ...

    Super admins pass every check that admins pass.

    Args:
        roles: Roles allowed to call the route

    Returns:
        Dependency function that checks the current user's role
    """
    allowed = set(roles)
    if UserRole.ADMIN in allowed:
        allowed.add(UserRole.SUPER_ADMIN)

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise AuthorizationError(
                message="You do not have permission to perform this action",
                user_id=current_user.id,
                user_role=current_user.role.value,
            )
        return current_user

    return role_checker


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """
    Require user to have an admin role.

    Raises:
        AuthorizationError: If user is not an admin or super admin
    """
    ensure_admin(current_user)
    return current_user


def get_blob_storage(request: Request) -> Optional[BlobStorage]:
    """
    Blob storage client built at startup.

    Returns None when the app was started without storage; upload routes
    then fail with StorageError from the service.
    """
    return getattr(request.app.state, "blob_storage", None)
