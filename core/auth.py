"""Authentication utilities for API."""

from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError

from core.security import decode_access_token

# Bearer security, errors are reported by get_current_user
_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller extracted from the bearer token."""

    user_id: int
    email: str
    username: str


async def get_current_user(credentials: HTTPAuthorizationCredentials | None = Depends(_bearer)) -> Principal:
    """
    Validate the `Authorization: Bearer <token>` header.

    Returns:
        Principal for the token's user

    Raises:
        HTTPException: 401 if the token is missing, expired or invalid
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token required")

    try:
        payload = decode_access_token(credentials.credentials)
    except ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired") from None
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from None

    try:
        return Principal(
            user_id=int(payload["userId"]),
            email=str(payload.get("email", "")),
            username=str(payload.get("username", "")),
        )
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from None
