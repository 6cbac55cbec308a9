"""
Authentication utilities for Horizon News.
Admin access is a bearer JWT whose email is on the configured allow-list.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import settings
from exceptions import AuthenticationError, AuthorizationError
from logging_config import admin_email_ctx

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a new JWT access token."""
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings().access_token_expire_minutes)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, settings().secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a JWT.

    Raises:
        AuthenticationError: If the signature is invalid or the token expired
    """
    try:
        return jwt.decode(token, settings().secret_key, algorithms=[ALGORITHM])
    except JWTError as e:
        raise AuthenticationError("Could not validate credentials") from e


def is_admin_email(email: Optional[str]) -> bool:
    if not email:
        return False
    return email.strip().lower() in settings().admin_email_list


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """
    Dependency for admin routes.

    Returns:
        The admin's email address
    """
    if credentials is None:
        raise AuthenticationError()

    payload = decode_access_token(credentials.credentials)
    email = payload.get("email") or payload.get("sub")
    if not email:
        raise AuthenticationError("Token carries no email")

    if not is_admin_email(email):
        logger.warning(f"Rejected admin access for {email}")
        raise AuthorizationError(f"{email} is not an administrator")

    admin_email_ctx.set(email)
    return email
