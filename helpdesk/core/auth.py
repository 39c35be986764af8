"""
JWT token utilities.

WHY: Helpdesk users sign in through the shared auth service, which issues
HS256 tokens carrying a user_id claim. This API only needs to verify those
tokens; create_access_token exists for service-to-service calls and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
from jose import jwt, JWTError

from helpdesk.core.config import settings
from helpdesk.core.exceptions import (
    TokenExpiredError,
    TokenInvalidError,
)


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Adds exp (default JWT_EXPIRATION_MINUTES from now), iat and nbf to the
    given claims. get_current_user only reads user_id.

    Args:
        data: Claims to encode in token
        expires_delta: Optional custom expiration time

    Returns:
        JWT token string

    Example:
        >>> verify_token(create_access_token({"user_id": 1}))["user_id"]
        1
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)

    to_encode.update(
        {
            "exp": expire,
            "iat": now,
            "nbf": now,
        }
    )

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Args:
        token: JWT token string

    Returns:
        Decoded token payload

    Raises:
        TokenExpiredError: If token has expired
        TokenInvalidError: If token is malformed or signature invalid
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )

    except jwt.ExpiredSignatureError:
        # Clients refresh on this one instead of signing in again
        raise TokenExpiredError(message="Token has expired")

    except JWTError as e:
        raise TokenInvalidError(
            message="Invalid token",
            error=str(e),
        )
