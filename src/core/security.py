"""Operator token handling."""
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from jose import ExpiredSignatureError, JWTError, jwt

from src.core.config import settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class AuthContext:
    """Who is calling, as far as the newsletter core cares."""

    is_authorized: bool = False
    operator_id: str | None = None


ANONYMOUS = AuthContext()


def create_access_token(
    subject: str | int,
    expires_delta: timedelta | None = None,
    additional_claims: dict[str, Any] | None = None,
) -> str:
    """Create a JWT access token for an operator."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode = {
        "exp": expire,
        "sub": str(subject),
        "type": "access",
        "jti": secrets.token_hex(16),
    }
    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        logger.info("Operator token expired")
        return None
    except JWTError:
        return None


def auth_context_from_token(token: str | None) -> AuthContext:
    """Build an AuthContext; anything short of a valid access token is anonymous."""
    if not token:
        return ANONYMOUS

    payload = decode_token(token)
    if not payload or payload.get("type") != "access" or not payload.get("sub"):
        return ANONYMOUS

    return AuthContext(is_authorized=True, operator_id=str(payload["sub"]))
