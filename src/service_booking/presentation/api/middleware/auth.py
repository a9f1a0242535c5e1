"""
Authentication middleware for the service booking API.

Requests carry a bearer JWT whose ``sub`` claim is the principal ID.
The principal's role and active flag are always read from storage, never
from the token.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ....domain.entities.principal import Principal
from ....infrastructure.services import ServiceFactory, get_service_factory
from ..config import get_settings


# Security scheme for bearer token authentication
security = HTTPBearer(auto_error=False)


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


def decode_principal_id(token: str) -> UUID:
    """
    Decode a JWT and return the principal ID from its subject.

    Raises:
        AuthenticationError: token is invalid, expired or has no usable subject
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        raise AuthenticationError(f"Invalid authentication token: {str(e)}")

    subject = payload.get("sub")
    if subject is None:
        raise AuthenticationError("Invalid token: missing subject")
    try:
        return UUID(str(subject))
    except ValueError:
        raise AuthenticationError("Invalid token: malformed subject")


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    factory: ServiceFactory = Depends(get_service_factory)
) -> Principal:
    """
    FastAPI dependency to get the current authenticated principal.

    Raises:
        HTTPException: 401 if the token is missing or invalid or the principal is unknown
                      403 if the principal is not active
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        principal_id = decode_principal_id(credentials.credentials)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    async with factory.get_principal_repository() as principals:
        principal = await principals.find_by_id(principal_id)

    if not principal:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Principal not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not principal.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )

    return principal


def create_access_token(principal_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token for a principal.

    Args:
        principal_id: The ID of the principal
        expires_delta: Optional custom expiration time

    Returns:
        str: The encoded JWT token
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    to_encode = {
        "sub": str(principal_id),
        "exp": expire,
        "iat": now,
        "type": "access_token"
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
