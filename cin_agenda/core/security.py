"""Security utilities for staff JWT handling.

Tokens are issued by the tenant identity provider; this service only verifies
them and reads the staff identity and tenant claims.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from cin_agenda.config import settings


class StaffPrincipal(BaseModel):
    """Authenticated staff member as described by token claims."""

    user_id: str
    name: str
    tenant_id: int
    role: str = "secretary"


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update(
        {
            "exp": expire,
            "iat": datetime.now(UTC),
            "type": "access",
        }
    )

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        # Verify token type
        if payload.get("type") != "access":
            return None

        return payload
    except JWTError:
        return None


def principal_from_payload(payload: dict[str, Any]) -> StaffPrincipal | None:
    """Build the staff principal from decoded claims, or None if claims are incomplete."""
    try:
        return StaffPrincipal(
            user_id=str(payload["sub"]),
            name=payload.get("name") or str(payload["sub"]),
            tenant_id=int(payload["tenant_id"]),
            role=payload.get("role", "secretary"),
        )
    except (KeyError, TypeError, ValueError, ValidationError):
        return None
