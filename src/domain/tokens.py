"""
Token minter - Opaque single-use tokens for email verification and password reset.

Tokens are 32 bytes from the secrets module (256 bits of entropy), encoded
URL-safe so they can travel in links. They are stored as-is: guessing one
is infeasible, so hashing adds nothing.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .exceptions import InvalidToken

TOKEN_BYTES = 32


@dataclass(frozen=True)
class OpaqueToken:
    """Minted token paired with its absolute UTC expiry."""

    value: str
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def mint_token(ttl_seconds: int, now: datetime | None = None) -> OpaqueToken:
    """
    Mint a new opaque token.

    Args:
        ttl_seconds: Lifetime of the token; 0 yields an already-expired token
        now: Current time (UTC), defaults to the wall clock

    Raises:
        ValueError: If ttl_seconds is negative
    """
    if ttl_seconds < 0:
        raise ValueError("ttl_seconds must be >= 0")
    issued_at = now or _utcnow()
    return OpaqueToken(
        value=secrets.token_urlsafe(TOKEN_BYTES),
        expires_at=issued_at + timedelta(seconds=ttl_seconds),
    )


def check_token(
    candidate: str,
    stored: str | None,
    stored_expiry: datetime | None,
    now: datetime | None = None,
) -> None:
    """
    Check a presented token against the stored one.

    The comparison runs in constant time. On success the caller must clear
    the stored token before committing so the token cannot be replayed.

    Raises:
        InvalidToken: If nothing is stored, the token differs, or it has expired
    """
    if stored is None or stored_expiry is None:
        raise InvalidToken()
    if not secrets.compare_digest(candidate.encode(), stored.encode()):
        raise InvalidToken()
    if stored_expiry <= (now or _utcnow()):
        raise InvalidToken()
