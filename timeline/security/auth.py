"""Bearer token authentication"""

from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import logging

from timeline.config import Settings, get_settings
from timeline.exceptions import AuthException

logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; missing headers are reported by get_current_owner
security = HTTPBearer(auto_error=False)


def create_access_token(
    owner_id: str,
    settings: Settings,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[dict] = None
) -> str:
    """
    Create JWT access token

    Args:
        owner_id: Principal id stored in the sub claim
        settings: Settings carrying the signing key
        expires_delta: Optional expiration time delta
        extra_claims: Additional claims

    Returns:
        Encoded JWT token
    """
    to_encode = dict(extra_claims or {})
    to_encode["sub"] = owner_id

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> Optional[dict]:
    """
    Decode JWT access token

    Returns:
        Decoded token data or None if invalid
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


async def get_current_owner(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings)
) -> str:
    """
    Resolve the owner id from the bearer token

    Raises:
        AuthException: Missing, invalid or expired token
    """
    if credentials is None or not credentials.credentials:
        raise AuthException()

    payload = decode_access_token(credentials.credentials, settings)
    if payload is None:
        logger.warning("Rejected invalid or expired access token")
        raise AuthException()

    owner_id = payload.get("sub")
    if not owner_id:
        raise AuthException()

    return str(owner_id)
