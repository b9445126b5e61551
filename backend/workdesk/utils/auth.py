"""
Authentication utilities - verify bearer tokens issued by the auth provider.

This service never manages sessions or passwords; it only resolves the
caller identity (the ``sub`` claim) of an already issued JWT.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..config import settings
from ..core.errors import UnauthenticatedError
from ..models import TokenData

# Bearer token security; missing headers are reported as UnauthenticatedError
security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token (local development and tests).

    Args:
        data: Claims to encode, ``sub`` being the user id
        expires_delta: Optional expiration time delta

    Returns:
        str: Encoded JWT token
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[TokenData]:
    """
    Decode and verify a JWT access token.

    Returns:
        Optional[TokenData]: Token data if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None
    return TokenData(user_id=user_id)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """
    Dependency to get current user ID from JWT token.

    Raises:
        UnauthenticatedError: Missing or invalid token
    """
    if credentials is None:
        raise UnauthenticatedError()

    token_data = decode_access_token(credentials.credentials)
    if token_data is None or token_data.user_id is None:
        raise UnauthenticatedError("Could not validate credentials")

    return token_data.user_id
