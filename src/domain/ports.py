"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the account record, the role enumeration and the
interfaces (ports) that the domain requires from infrastructure.
Adapters implement these protocols.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol


class UserRole(str, Enum):
    """
    Closed set of account roles.

    Values are the canonical lowercase text persisted in storage and
    carried in session tokens. to_str()/from_str() are the only mapping
    between the enum and its text form.
    """

    ADMIN = "admin"
    USER = "user"

    def to_str(self) -> str:
        return self.value

    @classmethod
    def from_str(cls, value: str) -> "UserRole":
        """
        Parse a role from text, case-insensitively.

        Raises:
            ValueError: If value is not a known role
        """
        try:
            return cls(value.strip().lower())
        except (AttributeError, ValueError):
            raise ValueError(f"invalid role: {value!r}") from None


@dataclass
class Account:
    """
    Durable identity record.

    Invariants:
    - verification_token and verification_token_expires_at are both set or both None
    - password_reset_token and password_reset_token_expires_at likewise
    - verified=True implies verification_token is None
    """

    name: str
    email: str
    password_hash: str
    created_at: datetime
    updated_at: datetime
    role: UserRole = UserRole.USER
    verified: bool = False
    verification_token: str | None = None
    verification_token_expires_at: datetime | None = None
    password_reset_token: str | None = None
    password_reset_token_expires_at: datetime | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN


class AccountRepository(Protocol):
    """
    Port interface for account persistence.

    Implementations raise ServerError on transport or storage failure.
    """

    def find_account_by_email(self, email: str) -> Account | None: ...

    def find_account_by_id(self, account_id: uuid.UUID) -> Account | None: ...

    def find_account_by_verification_token(self, token: str) -> Account | None: ...

    def find_account_by_reset_token(self, token: str) -> Account | None: ...

    def insert_account(self, account: Account) -> Account:
        """
        Persist a new account.

        Raises:
            EmailExist: If the storage uniqueness constraint on email fires
        """
        ...

    def update_account(self, account: Account) -> Account:
        """
        Overwrite the profile columns: name, email, password hash, role.

        Token and verification columns are only changed through the
        store/consume operations below.
        """
        ...

    def store_reset_token(
        self,
        account_id: uuid.UUID,
        token: str,
        expires_at: datetime,
        updated_at: datetime,
    ) -> Account:
        """Replace any outstanding reset token of an account."""
        ...

    def consume_verification_token(self, token: str, now: datetime) -> Account | None:
        """
        Atomically mark the holder of an unexpired token verified and clear it.

        Returns:
            The updated account, or None if no account holds the token
            unexpired at `now` (including when a concurrent call consumed it)
        """
        ...

    def consume_reset_token(
        self, token: str, password_hash: str, now: datetime
    ) -> Account | None:
        """
        Atomically set a new password hash and clear an unexpired reset token.

        Returns:
            The updated account, or None if no account holds the token
            unexpired at `now` (including when a concurrent call consumed it)
        """
        ...

    def list_accounts(self, limit: int, offset: int) -> list[Account]:
        """Return accounts ordered by creation time, newest first."""
        ...

    def count_accounts(self) -> int: ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_verification_email(self, email: str, name: str, token: str) -> None:
        """
        Send the email verification link.

        Args:
            email: Recipient email address
            name: Account display name
            token: Opaque verification token
        """
        ...

    def send_welcome_email(self, email: str, name: str) -> None: ...

    def send_password_reset_email(self, email: str, name: str, token: str) -> None:
        """
        Send the password reset link.

        Args:
            email: Recipient email address
            name: Account display name
            token: Opaque reset token
        """
        ...
