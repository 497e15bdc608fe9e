"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- An in-memory AccountRepository (unique email, copy-on-read)
- A fast PasswordHasher (bcrypt cost 4)
- A mocked EmailSender and a wired AccountService with a controllable clock
"""

import copy
import threading
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from src.domain.accounts import AccountService
from src.domain.exceptions import EmailExist
from src.domain.passwords import PasswordHasher
from src.domain.ports import Account

TEST_SECRET = "test-secret-key-with-enough-length-for-hs256"


class InMemoryAccountRepository:
    """
    Implements AccountRepository protocol with a dict.

    Returns copies so that callers only change stored state through the
    write operations, as with a real database. Writes hold a lock so the
    consume operations are atomic like their conditional UPDATEs.
    """

    def __init__(self) -> None:
        self.accounts: dict[uuid.UUID, Account] = {}
        self._lock = threading.Lock()

    def _first(self, predicate) -> Account | None:
        for account in self.accounts.values():
            if predicate(account):
                return copy.deepcopy(account)
        return None

    def find_account_by_email(self, email: str) -> Account | None:
        return self._first(lambda a: a.email == email)

    def find_account_by_id(self, account_id: uuid.UUID) -> Account | None:
        return self._first(lambda a: a.id == account_id)

    def find_account_by_verification_token(self, token: str) -> Account | None:
        return self._first(lambda a: a.verification_token == token)

    def find_account_by_reset_token(self, token: str) -> Account | None:
        return self._first(lambda a: a.password_reset_token == token)

    def insert_account(self, account: Account) -> Account:
        with self._lock:
            if any(a.email == account.email for a in self.accounts.values()):
                raise EmailExist()
            self.accounts[account.id] = copy.deepcopy(account)
            return copy.deepcopy(account)

    def update_account(self, account: Account) -> Account:
        with self._lock:
            stored = self.accounts[account.id]
            stored.name = account.name
            stored.email = account.email
            stored.password_hash = account.password_hash
            stored.role = account.role
            stored.updated_at = account.updated_at
            return copy.deepcopy(stored)

    def store_reset_token(
        self,
        account_id: uuid.UUID,
        token: str,
        expires_at: datetime,
        updated_at: datetime,
    ) -> Account:
        with self._lock:
            stored = self.accounts[account_id]
            stored.password_reset_token = token
            stored.password_reset_token_expires_at = expires_at
            stored.updated_at = updated_at
            return copy.deepcopy(stored)

    def consume_verification_token(self, token: str, now: datetime) -> Account | None:
        with self._lock:
            for stored in self.accounts.values():
                if (
                    stored.verification_token == token
                    and stored.verification_token_expires_at > now
                ):
                    stored.verified = True
                    stored.verification_token = None
                    stored.verification_token_expires_at = None
                    stored.updated_at = now
                    return copy.deepcopy(stored)
            return None

    def consume_reset_token(
        self, token: str, password_hash: str, now: datetime
    ) -> Account | None:
        with self._lock:
            for stored in self.accounts.values():
                if (
                    stored.password_reset_token == token
                    and stored.password_reset_token_expires_at > now
                ):
                    stored.password_hash = password_hash
                    stored.password_reset_token = None
                    stored.password_reset_token_expires_at = None
                    stored.updated_at = now
                    return copy.deepcopy(stored)
            return None

    def list_accounts(self, limit: int, offset: int) -> list[Account]:
        ordered = sorted(self.accounts.values(), key=lambda a: a.created_at, reverse=True)
        return [copy.deepcopy(a) for a in ordered[offset : offset + limit]]

    def count_accounts(self) -> int:
        return len(self.accounts)


class FakeClock:
    """Settable UTC clock for AccountService."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def repository() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def email_sender() -> Mock:
    return Mock()


@pytest.fixture
def hasher() -> PasswordHasher:
    """bcrypt at minimum cost keeps the suite fast."""
    return PasswordHasher(cost=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def service(
    repository: InMemoryAccountRepository,
    email_sender: Mock,
    hasher: PasswordHasher,
    clock: FakeClock,
) -> AccountService:
    return AccountService(
        repository=repository,
        email_sender=email_sender,
        jwt_secret=TEST_SECRET,
        jwt_maxage=3600,
        hasher=hasher,
        clock=clock,
    )


@pytest.fixture
def jwt_secret() -> str:
    return TEST_SECRET
