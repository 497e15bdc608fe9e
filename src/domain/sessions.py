"""
Session token codec - Signed, stateless bearer tokens.

Tokens are HS256 JWTs carrying the account id (sub), role, issued-at and
expiry. Nothing is stored server-side; expiry is the only way a token stops
being valid.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import jwt

from .exceptions import InvalidToken, ServerError
from .ports import UserRole

ALGORITHM = "HS256"


@dataclass(frozen=True)
class SessionClaims:
    """Identity asserted by a verified session token."""

    account_id: uuid.UUID
    role: UserRole
    issued_at: int
    expires_at: int


def _timestamp(now: datetime | None) -> int:
    return int((now or datetime.now(timezone.utc)).timestamp())


def issue_session_token(
    account_id: uuid.UUID,
    role: UserRole,
    secret: str,
    max_age_seconds: int,
    now: datetime | None = None,
) -> str:
    """
    Sign a session token for an account.

    Raises:
        ServerError: If no signing secret is configured
    """
    if not secret:
        raise ServerError()
    issued_at = _timestamp(now)
    claims = {
        "sub": str(account_id),
        "role": role.to_str(),
        "iat": issued_at,
        "exp": issued_at + max_age_seconds,
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def verify_session_token(token: str, secret: str, now: datetime | None = None) -> SessionClaims:
    """
    Verify signature, structure and expiry of a session token.

    Expiry is checked against `now` rather than by PyJWT so callers can
    evaluate tokens at a chosen instant.

    Raises:
        InvalidToken: Bad signature, malformed token, unknown role or expired
        ServerError: If no signing secret is configured
    """
    if not secret:
        raise ServerError()

    try:
        data = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={
                "require": ["sub", "role", "iat", "exp"],
                "verify_exp": False,
                "verify_iat": False,
            },
        )
        claims = SessionClaims(
            account_id=uuid.UUID(data["sub"]),
            role=UserRole.from_str(data["role"]),
            issued_at=int(data["iat"]),
            expires_at=int(data["exp"]),
        )
    except (jwt.PyJWTError, ValueError, TypeError) as e:
        raise InvalidToken() from e

    if claims.expires_at <= _timestamp(now):
        raise InvalidToken()
    return claims
