"""
Adversarial tests for opaque and session token abuse.

Verifies that:
- Verification and reset tokens cannot be replayed after use, even by
  concurrent requests that both read the token before either writes
- Expired tokens are refused
- Session tokens cannot be forged, re-signed or kept alive past expiry
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import jwt
import pytest

from src.domain.accounts import AccountService
from src.domain.exceptions import InvalidToken

pytestmark = pytest.mark.adversarial


def reset_token_for(service: AccountService, email_sender: Mock, email: str) -> str:
    service.forgot_password(email)
    return email_sender.send_password_reset_email.call_args[0][2]


class TestOpaqueTokenReplay:
    def test_verification_replay_rejected(self, service, email_sender) -> None:
        account = service.register("Ann", "ann@x.com", "secret1")
        service.verify_email(account.verification_token)

        with pytest.raises(InvalidToken):
            service.verify_email(account.verification_token)

    def test_reset_replay_cannot_overwrite_password(self, service, email_sender) -> None:
        """Replaying a used reset token leaves the new password in place."""
        service.register("Ann", "ann@x.com", "secret1")
        token = reset_token_for(service, email_sender, "ann@x.com")
        service.reset_password(token, "owner-pw")

        with pytest.raises(InvalidToken):
            service.reset_password(token, "attacker")

        assert service.login("ann@x.com", "owner-pw")

    def test_new_reset_request_invalidates_previous_token(self, service, email_sender) -> None:
        service.register("Ann", "ann@x.com", "secret1")
        first = reset_token_for(service, email_sender, "ann@x.com")
        second = reset_token_for(service, email_sender, "ann@x.com")

        with pytest.raises(InvalidToken):
            service.reset_password(first, "brandnew")
        service.reset_password(second, "brandnew")

    def test_prefix_of_token_rejected(self, service, email_sender) -> None:
        service.register("Ann", "ann@x.com", "secret1")
        token = reset_token_for(service, email_sender, "ann@x.com")

        with pytest.raises(InvalidToken):
            service.reset_password(token[:-1], "brandnew")


def hold_reads_until_both_arrive(repository, method_name: str) -> None:
    """Make two concurrent lookups both finish before either caller writes."""
    barrier = threading.Barrier(2, timeout=5)
    lookup = getattr(repository, method_name)

    def synchronized(token: str):
        found = lookup(token)
        barrier.wait()
        return found

    setattr(repository, method_name, synchronized)


def run_twice_concurrently(call, *argument_sets) -> list[str]:
    def attempt(args) -> str:
        try:
            call(*args)
        except InvalidToken:
            return "rejected"
        return "ok"

    with ThreadPoolExecutor(max_workers=2) as executor:
        return sorted(executor.map(attempt, argument_sets))


class TestConcurrentTokenUse:
    """Two requests holding the same token: exactly one wins."""

    def test_concurrent_resets_spend_token_once(self, service, email_sender, repository) -> None:
        service.register("Ann", "ann@x.com", "secret1")
        token = reset_token_for(service, email_sender, "ann@x.com")
        hold_reads_until_both_arrive(repository, "find_account_by_reset_token")

        results = run_twice_concurrently(
            service.reset_password, (token, "owner-pw"), (token, "attacker")
        )

        assert results == ["ok", "rejected"]
        stored = repository.find_account_by_email("ann@x.com")
        assert stored.password_reset_token is None
        winners = [
            password
            for password in ("owner-pw", "attacker")
            if service.hasher.verify(password, stored.password_hash)
        ]
        assert len(winners) == 1

    def test_concurrent_verifications_spend_token_once(
        self, service, email_sender, repository
    ) -> None:
        account = service.register("Ann", "ann@x.com", "secret1")
        hold_reads_until_both_arrive(repository, "find_account_by_verification_token")

        results = run_twice_concurrently(
            service.verify_email, (account.verification_token,), (account.verification_token,)
        )

        assert results == ["ok", "rejected"]
        email_sender.send_welcome_email.assert_called_once()

    def test_stale_profile_write_cannot_restore_spent_token(
        self, service, email_sender, repository
    ) -> None:
        """A rename based on a read taken before verification keeps the token spent."""
        stale = service.register("Ann", "ann@x.com", "secret1")
        service.verify_email(stale.verification_token)

        service.update_name(stale, "Annie")

        stored = repository.find_account_by_id(stale.id)
        assert stored.name == "Annie"
        assert stored.verified is True
        assert stored.verification_token is None
        with pytest.raises(InvalidToken):
            service.verify_email(stale.verification_token)


class TestSessionTokenForgery:
    def test_role_escalation_by_resigning_fails(self, service, jwt_secret) -> None:
        service.register("Ann", "ann@x.com", "secret1")
        token = service.login("ann@x.com", "secret1")
        claims = jwt.decode(token, options={"verify_signature": False})
        claims["role"] = "admin"
        forged = jwt.encode(claims, "guessed-secret-key-with-enough-length!!", algorithm="HS256")

        with pytest.raises(InvalidToken):
            service.authenticate(forged)

    def test_token_refused_at_expiry(self, service, clock) -> None:
        service.register("Ann", "ann@x.com", "secret1")
        token = service.login("ann@x.com", "secret1")
        clock.advance(3600)

        with pytest.raises(InvalidToken):
            service.authenticate(token)

    def test_algorithm_none_rejected(self, service) -> None:
        account = service.register("Ann", "ann@x.com", "secret1")
        forged = jwt.encode(
            {"sub": str(account.id), "role": "admin", "iat": 0, "exp": 2**31},
            None,
            algorithm="none",
        )

        with pytest.raises(InvalidToken):
            service.authenticate(forged)
