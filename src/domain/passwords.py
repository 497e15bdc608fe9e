"""
Credential hasher - bcrypt password hashing and verification.

Security Design - Timing Oracle Prevention:
------------------------------------------
verify() always runs exactly one bcrypt comparison. When there is no
stored hash (unknown account) or the candidate is too long to hash, it
compares against a pre-computed dummy hash instead, so response time does
not reveal whether the account exists.
"""

import logging
from dataclasses import dataclass

import bcrypt

from .exceptions import EmptyPassword, ExceededMaxPasswordLength, HashingError, ServerError

logger = logging.getLogger(__name__)

DEFAULT_MAX_PASSWORD_LENGTH = 64

# bcrypt only accepts up to 72 bytes of input
_BCRYPT_MAX_BYTES = 72

# Pre-computed bcrypt hash for timing oracle prevention.
_DUMMY_BCRYPT_HASH = bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(10))


@dataclass(frozen=True)
class PasswordHasher:
    """
    Adaptive one-way password hashing.

    Attributes:
        cost: bcrypt work factor (log2 rounds), raised as hardware improves
        max_length: Longest accepted plaintext, in characters
    """

    cost: int = 10
    max_length: int = DEFAULT_MAX_PASSWORD_LENGTH

    def hash(self, plaintext: str) -> str:
        """
        Hash a plaintext password with a fresh salt.

        Raises:
            EmptyPassword: If plaintext is empty
            ExceededMaxPasswordLength: If plaintext exceeds max_length characters
                or 72 UTF-8 bytes
            HashingError: If bcrypt rejects the input or fails
        """
        if not plaintext:
            raise EmptyPassword()
        encoded = plaintext.encode()
        # Multibyte characters can push a short password past bcrypt's byte limit
        if len(plaintext) > self.max_length or len(encoded) > _BCRYPT_MAX_BYTES:
            raise ExceededMaxPasswordLength(self.max_length, len(plaintext))

        try:
            hashed = bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.cost))
        except ValueError as e:
            logger.warning("Password hashing failed: %s", type(e).__name__)
            raise HashingError() from e
        return hashed.decode()

    def verify(self, plaintext: str, hash_blob: str | None) -> bool:
        """
        Check plaintext against a stored hash in constant time.

        Args:
            plaintext: Candidate password
            hash_blob: Stored bcrypt hash, or None when no account matched

        Returns:
            True only if hash_blob is present and matches plaintext

        Raises:
            ServerError: If hash_blob is not a valid bcrypt hash
        """
        candidate = plaintext.encode()
        if hash_blob is None or len(candidate) > _BCRYPT_MAX_BYTES:
            bcrypt.checkpw(candidate[:_BCRYPT_MAX_BYTES], _DUMMY_BCRYPT_HASH)
            return False

        try:
            return bcrypt.checkpw(candidate, hash_blob.encode())
        except ValueError as e:
            logger.error("Stored password hash is malformed")
            raise ServerError() from e
