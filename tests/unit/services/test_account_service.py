"""Tests for the account lifecycle."""

import threading
from unittest.mock import Mock

import jwt
import pytest

from credential_service.config import Settings
from credential_service.database import Base, create_db_engine, create_session_factory
from credential_service.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    NotFoundError,
    NotVerifiedError,
    OperationTimeoutError,
    TokenNotFoundError,
    ValidationError,
)
from credential_service.services.account_service import AccountService, AccountView
from credential_service.services.repositories.account_store import AccountStore
from tests.conftest import TEST_SECRET

EMAIL = "a@x.com"
PASSWORD = "longpassword1"


def _last_token(notifier: Mock) -> str:
    return notifier.call_args[0][1]


class TestRegister:
    """Tests for AccountService.register."""

    def test_register_creates_unverified_account(self, account_service, store):
        account = account_service.register(EMAIL, PASSWORD)

        assert isinstance(account, AccountView)
        assert account.email == EMAIL
        assert account.is_verified is False
        assert store.find_by_email(EMAIL).id == account.id

    def test_register_stores_hash_not_password(self, account_service, store, hasher):
        account_service.register(EMAIL, PASSWORD)

        stored = store.find_by_email(EMAIL)
        assert stored.password_hash != PASSWORD
        assert hasher.verify(PASSWORD, stored.password_hash) is True

    def test_register_sends_verification_token(self, account_service, store, notifier):
        account_service.register(EMAIL, PASSWORD)

        notifier.assert_called_once()
        address, token = notifier.call_args[0]
        assert address == EMAIL
        assert store.find_by_email(EMAIL).verification_token == token

    def test_view_hides_hash_and_token(self, account_service):
        account = account_service.register(EMAIL, PASSWORD)

        assert not hasattr(account, "password_hash")
        assert not hasattr(account, "verification_token")

    def test_register_normalizes_email(self, account_service):
        account = account_service.register("  A@X.Com ", PASSWORD)

        assert account.email == EMAIL

    def test_duplicate_email_fails_without_side_effects(self, account_service, store, notifier):
        account_service.register(EMAIL, PASSWORD)
        notifier.reset_mock()

        with pytest.raises(DuplicateEmailError):
            account_service.register("A@x.com", "anotherpassword")

        notifier.assert_not_called()
        assert store.exists_by_email(EMAIL) is True

    @pytest.mark.parametrize(
        "email, password",
        [
            ("", PASSWORD),
            (EMAIL, ""),
            ("not-an-email", PASSWORD),
            ("a@x", PASSWORD),
            ("a b@x.com", PASSWORD),
            ("a@.x.com", PASSWORD),
            ("a@x..com", PASSWORD),
            ("a..b@x.com", PASSWORD),
            ("a@-x.com", PASSWORD),
            (".a@x.com", PASSWORD),
            (EMAIL, "short"),
            (EMAIL, "x" * 73),
        ],
    )
    def test_register_validation(self, account_service, notifier, email, password):
        with pytest.raises(ValidationError):
            account_service.register(email, password)

        notifier.assert_not_called()

    def test_notification_failure_does_not_fail_registration(self, account_service, notifier):
        notifier.side_effect = RuntimeError("smtp down")

        account = account_service.register(EMAIL, PASSWORD)

        assert account.email == EMAIL

    def test_notification_soft_failure_result_is_ignored(self, account_service, notifier):
        notifier.return_value = False

        assert account_service.register(EMAIL, PASSWORD).email == EMAIL

    def test_notification_goes_through_scheduler(self, account_service, notifier):
        scheduled = []

        account_service.register(EMAIL, PASSWORD, schedule=lambda func, *args: scheduled.append((func, args)))

        notifier.assert_not_called()
        assert len(scheduled) == 1
        func, args = scheduled[0]
        func(*args)
        notifier.assert_called_once()

    def test_spent_deadline_times_out(self, store, hasher, issuer, notifier):
        service = AccountService(store, hasher, issuer, notifier, timeout_seconds=0)

        with pytest.raises(OperationTimeoutError):
            service.register(EMAIL, PASSWORD)

        assert store.exists_by_email(EMAIL) is False


class TestVerify:
    """Tests for AccountService.verify."""

    def test_verify_with_issued_token(self, account_service, store, notifier):
        account_service.register(EMAIL, PASSWORD)

        account_service.verify(_last_token(notifier))

        stored = store.find_by_email(EMAIL)
        assert stored.is_verified is True
        assert stored.verification_token is None

    def test_token_is_single_use(self, account_service, notifier):
        account_service.register(EMAIL, PASSWORD)
        token = _last_token(notifier)

        account_service.verify(token)
        with pytest.raises(TokenNotFoundError):
            account_service.verify(token)

    def test_unknown_token_mutates_nothing(self, account_service, store):
        account_service.register(EMAIL, PASSWORD)

        with pytest.raises(TokenNotFoundError):
            account_service.verify("never-issued")

        assert store.find_by_email(EMAIL).is_verified is False

    @pytest.mark.parametrize("token", ["", "   ", None])
    def test_empty_token_rejected(self, account_service, token):
        with pytest.raises(ValidationError):
            account_service.verify(token)


class TestAuthenticate:
    """Tests for AccountService.authenticate and login."""

    def test_unverified_login_regenerates_token(self, account_service, store, notifier):
        account_service.register(EMAIL, PASSWORD)
        first_token = _last_token(notifier)

        with pytest.raises(NotVerifiedError):
            account_service.login(EMAIL, PASSWORD)

        second_token = _last_token(notifier)
        assert notifier.call_count == 2
        assert second_token != first_token
        assert store.find_by_email(EMAIL).verification_token == second_token
        with pytest.raises(TokenNotFoundError):
            account_service.verify(first_token)

    def test_wrong_password(self, account_service, store, notifier):
        account_service.register(EMAIL, PASSWORD)
        before = store.find_by_email(EMAIL)

        with pytest.raises(InvalidCredentialsError):
            account_service.authenticate(EMAIL, "wrongpassword")

        after = store.find_by_email(EMAIL)
        assert after.verification_token == before.verification_token
        assert after.is_verified is False
        assert notifier.call_count == 1

    def test_unknown_email_matches_wrong_password(self, account_service):
        """Both failures must be indistinguishable."""
        account_service.register(EMAIL, PASSWORD)

        with pytest.raises(InvalidCredentialsError) as unknown:
            account_service.authenticate("nobody@x.com", PASSWORD)
        with pytest.raises(InvalidCredentialsError) as wrong:
            account_service.authenticate(EMAIL, "wrongpassword")

        assert str(unknown.value) == str(wrong.value)

    def test_login_after_verification(self, account_service, notifier):
        account_service.register(EMAIL, PASSWORD)
        account_service.verify(_last_token(notifier))

        result = account_service.login("A@X.com", PASSWORD)

        claims = jwt.decode(result.token, TEST_SECRET, algorithms=["HS256"])
        assert claims["sub"] == result.account.id
        assert result.account.email == EMAIL
        assert result.account.is_verified is True
        assert not hasattr(result.account, "password_hash")

    def test_verified_concurrently_with_login(self, account_service, store, notifier, monkeypatch):
        """Verification racing the token replacement lets the login through."""
        account_service.register(EMAIL, PASSWORD)
        token = _last_token(notifier)
        real_replace = store.replace_verification_token

        def verify_first(email, new_token, deadline=None):
            store.consume_verification_token(token)
            real_replace(email, new_token, deadline)

        monkeypatch.setattr(store, "replace_verification_token", verify_first)

        account = account_service.authenticate(EMAIL, PASSWORD)

        assert account.is_verified is True


class TestRegenerateToken:
    """Tests for AccountService.regenerate_token."""

    def test_regenerate_for_unverified(self, account_service, store, notifier):
        account_service.register(EMAIL, PASSWORD)

        token = account_service.regenerate_token(EMAIL)

        assert store.find_by_email(EMAIL).verification_token == token
        assert _last_token(notifier) == token

    def test_regenerate_refused_once_verified(self, account_service, notifier):
        account_service.register(EMAIL, PASSWORD)
        account_service.verify(_last_token(notifier))

        with pytest.raises(NotFoundError):
            account_service.regenerate_token(EMAIL)

    def test_regenerate_unknown_email(self, account_service):
        with pytest.raises(NotFoundError):
            account_service.regenerate_token("nobody@x.com")


class TestGetAccount:
    def test_get_account(self, account_service):
        created = account_service.register(EMAIL, PASSWORD)

        assert account_service.get_account(created.id).email == EMAIL

    def test_get_missing_account(self, account_service):
        with pytest.raises(NotFoundError):
            account_service.get_account("missing")


def test_example_scenario(account_service, notifier):
    """Register, blocked login, verify the re-issued token, login."""
    account = account_service.register(EMAIL, PASSWORD)
    assert account.is_verified is False

    with pytest.raises(NotVerifiedError):
        account_service.login(EMAIL, PASSWORD)
    token2 = _last_token(notifier)

    account_service.verify(token2)
    result = account_service.login(EMAIL, PASSWORD)

    assert result.account.id == account.id
    assert jwt.decode(result.token, TEST_SECRET, algorithms=["HS256"])["sub"] == account.id


def test_concurrent_registration_has_one_winner(tmp_path, hasher, issuer):
    """N parallel registrations of one email: one succeeds, N-1 see DuplicateEmailError."""
    config = Settings(_env_file=None, database_url=f"sqlite:///{tmp_path / 'accounts.db'}")
    engine = create_db_engine(config)
    Base.metadata.create_all(bind=engine)
    store = AccountStore(create_session_factory(engine))
    service = AccountService(store, hasher, issuer, Mock(return_value=True), timeout_seconds=30)

    callers = 8
    barrier = threading.Barrier(callers)
    results: list[str] = []
    lock = threading.Lock()

    def register(i: int) -> None:
        barrier.wait()
        try:
            service.register(EMAIL, f"{PASSWORD}-{i}")
            outcome = "ok"
        except DuplicateEmailError:
            outcome = "duplicate"
        except Exception as e:  # surfaced through the assertion below
            outcome = repr(e)
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=register, args=(i,)) for i in range(callers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    engine.dispose()

    assert sorted(results) == ["duplicate"] * (callers - 1) + ["ok"]
