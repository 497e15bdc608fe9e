"""
Account domain service - Credential and token lifecycle state machine.

This module contains the core business logic for the account lifecycle:
registration, email verification, login, profile and role updates, and
password change/reset.

Account State Machine
=====================

States:
- Unregistered: no account row for the email
- Registered-Unverified: account created, verification token outstanding
- Registered-Verified: verification token consumed

Transitions:
    Unregistered          -> Registered-Unverified  (register)
    Registered-Unverified -> Registered-Verified    (verify_email)

Authenticated is not a stored state. It is derived per request from a
valid session token (authenticate).

Opaque tokens are single use: verify_email and reset_password clear the
token in the same conditional write that applies the transition, and a
token spent by a concurrent request is reported as InvalidToken.
Uniqueness of email is enforced finally by the storage constraint.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .exceptions import (
    EmailExist,
    InvalidToken,
    PermissionDenied,
    TokenNotProvided,
    UserNoLongerExist,
    UserNotAuthenticated,
    WrongCredentials,
)
from .passwords import PasswordHasher
from .ports import Account, AccountRepository, EmailSender, UserRole
from .sessions import issue_session_token, verify_session_token
from .tokens import check_token, mint_token

logger = logging.getLogger(__name__)

DEFAULT_VERIFICATION_TTL_SECONDS = 24 * 60 * 60
DEFAULT_RESET_TTL_SECONDS = 30 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AccountService:
    """
    Domain service for the account lifecycle.

    Orchestrates hashing, token minting, session issuance and persistence.
    All errors raised are AccountError subclasses.
    """

    repository: AccountRepository
    email_sender: EmailSender
    jwt_secret: str
    jwt_maxage: int
    hasher: PasswordHasher = field(default_factory=PasswordHasher)
    verification_ttl_seconds: int = DEFAULT_VERIFICATION_TTL_SECONDS
    reset_ttl_seconds: int = DEFAULT_RESET_TTL_SECONDS
    require_verified_email: bool = False
    clock: Callable[[], datetime] = _utcnow

    def register(self, name: str, email: str, password: str) -> Account:
        """
        Register a new, unverified account and send its verification token.

        Args:
            name: Display name
            email: Email address (will be normalized)
            password: Plaintext password (will be hashed)

        Returns:
            The created account

        Raises:
            EmailExist: If the email is already registered
        """
        normalized_email = self._normalize_email(email)
        if self.repository.find_account_by_email(normalized_email) is not None:
            raise EmailExist()

        password_hash = self.hasher.hash(password)
        now = self.clock()
        token = mint_token(self.verification_ttl_seconds, now=now)

        account = self.repository.insert_account(
            Account(
                name=name,
                email=normalized_email,
                password_hash=password_hash,
                verification_token=token.value,
                verification_token_expires_at=token.expires_at,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("Account registered: %s", account.id)

        self._deliver(
            "verification",
            account,
            self.email_sender.send_verification_email,
            account.email,
            account.name,
            token.value,
        )
        return account

    def verify_email(self, token: str) -> Account:
        """
        Consume a verification token and mark the account verified.

        Raises:
            InvalidToken: If the token is unknown or expired
        """
        account = self.repository.find_account_by_verification_token(token)
        if account is None:
            raise InvalidToken()

        now = self.clock()
        check_token(
            token, account.verification_token, account.verification_token_expires_at, now=now
        )

        verified = self.repository.consume_verification_token(token, now)
        if verified is None:
            # Spent by a concurrent request between the read and the write
            raise InvalidToken()
        logger.info("Account verified: %s", verified.id)

        self._deliver(
            "welcome",
            verified,
            self.email_sender.send_welcome_email,
            verified.email,
            verified.name,
        )
        return verified

    def login(self, email: str, password: str) -> str:
        """
        Check credentials and issue a session token.

        Unknown email and wrong password raise the same error after the same
        amount of hashing work.

        Returns:
            Signed session token

        Raises:
            WrongCredentials: If the email is unknown or the password is wrong
            PermissionDenied: If verification is required and still pending
        """
        account = self.repository.find_account_by_email(self._normalize_email(email))
        stored_hash = account.password_hash if account is not None else None

        if not self.hasher.verify(password, stored_hash) or account is None:
            logger.warning("Login rejected: wrong credentials")
            raise WrongCredentials()

        if self.require_verified_email and not account.verified:
            logger.warning("Login rejected: account %s not verified", account.id)
            raise PermissionDenied()

        return issue_session_token(
            account.id, account.role, self.jwt_secret, self.jwt_maxage, now=self.clock()
        )

    def authenticate(self, token: str | None) -> Account:
        """
        Resolve the principal behind a session token.

        Raises:
            TokenNotProvided: If no token was presented
            InvalidToken: If the token fails verification or has expired
            UserNoLongerExist: If the account was removed after issuance
        """
        if not token:
            raise TokenNotProvided()

        claims = verify_session_token(token, self.jwt_secret, now=self.clock())
        account = self.repository.find_account_by_id(claims.account_id)
        if account is None:
            raise UserNoLongerExist()
        return account

    def list_accounts(
        self, principal: Account | None, page: int = 1, limit: int = 10
    ) -> tuple[list[Account], int]:
        """
        Page through all accounts (admin only).

        Returns:
            Tuple of (accounts on the page, total account count)
        """
        self._require_admin(principal)
        accounts = self.repository.list_accounts(limit=limit, offset=(page - 1) * limit)
        return accounts, self.repository.count_accounts()

    def update_name(self, principal: Account | None, name: str) -> Account:
        """Rename the principal's own account."""
        principal = self._require_principal(principal)
        principal.name = name
        principal.updated_at = self.clock()
        return self.repository.update_account(principal)

    def update_role(
        self, principal: Account | None, account_id: uuid.UUID, role: UserRole
    ) -> Account:
        """
        Change the role of any account (admin only).

        Raises:
            PermissionDenied: If the principal is not an admin
            UserNoLongerExist: If the target account does not exist
        """
        self._require_admin(principal)
        account = self.repository.find_account_by_id(account_id)
        if account is None:
            raise UserNoLongerExist()

        account.role = role
        account.updated_at = self.clock()
        account = self.repository.update_account(account)
        logger.info("Role of account %s set to %s", account.id, role.to_str())
        return account

    def change_password(
        self, principal: Account | None, old_password: str, new_password: str
    ) -> Account:
        """
        Replace the principal's password after checking the current one.

        Raises:
            WrongCredentials: If old_password does not match
        """
        principal = self._require_principal(principal)
        if not self.hasher.verify(old_password, principal.password_hash):
            raise WrongCredentials()

        principal.password_hash = self.hasher.hash(new_password)
        principal.updated_at = self.clock()
        return self.repository.update_account(principal)

    def forgot_password(self, email: str) -> None:
        """
        Start a password reset.

        Completes the same way whether or not the email is registered. For a
        registered email a reset token is minted and emailed.
        """
        account = self.repository.find_account_by_email(self._normalize_email(email))
        if account is None:
            return

        now = self.clock()
        token = mint_token(self.reset_ttl_seconds, now=now)
        account = self.repository.store_reset_token(
            account.id, token.value, token.expires_at, updated_at=now
        )

        # Reporting a delivery failure would reveal that the email is registered
        self._deliver(
            "password reset",
            account,
            self.email_sender.send_password_reset_email,
            account.email,
            account.name,
            token.value,
        )

    def reset_password(self, token: str, new_password: str) -> None:
        """
        Consume a reset token and set a new password.

        Raises:
            InvalidToken: If the token is unknown or expired
        """
        account = self.repository.find_account_by_reset_token(token)
        if account is None:
            raise InvalidToken()

        now = self.clock()
        check_token(
            token, account.password_reset_token, account.password_reset_token_expires_at, now=now
        )

        password_hash = self.hasher.hash(new_password)
        if self.repository.consume_reset_token(token, password_hash, now) is None:
            # Spent by a concurrent request between the read and the write
            raise InvalidToken()
        logger.info("Password reset for account %s", account.id)

    def _deliver(
        self, kind: str, account: Account, send: Callable[..., None], *args: str
    ) -> None:
        """
        Send a notification after the state change it announces has committed.

        Delivery failures are logged, not raised; the state change stands.
        """
        try:
            send(*args)
        except Exception:
            logger.exception("Failed to send %s email for account %s", kind, account.id)

    def _require_principal(self, principal: Account | None) -> Account:
        if principal is None:
            raise UserNotAuthenticated()
        return principal

    def _require_admin(self, principal: Account | None) -> Account:
        principal = self._require_principal(principal)
        if not principal.is_admin():
            raise PermissionDenied()
        return principal

    def _normalize_email(self, email: str) -> str:
        """
        Normalize email address for consistent storage and lookup.

        Applies: strip whitespace + lowercase
        """
        return email.strip().lower()
