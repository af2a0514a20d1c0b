"""Account lifecycle: registration, verification, authentication and login.

Accounts start Unverified and become Verified exactly once, by consuming
their current verification token. Logging in to an unverified account
replaces its token and sends a fresh verification email instead of issuing
a session.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from credential_service.exceptions import (
    InvalidCredentialsError,
    NotFoundError,
    NotVerifiedError,
    ValidationError,
)
from credential_service.models import Account
from credential_service.services.deadline import Deadline
from credential_service.services.password_hasher import BCRYPT_MAX_PASSWORD_BYTES, PasswordHasher
from credential_service.services.repositories.account_store import AccountStore
from credential_service.services.session_issuer import SessionIssuer
from credential_service.services.token_generator import TokenGenerator

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)

# (address, token) -> delivered
NotificationSink = Callable[[str, str], Any]
# Runs func(*args), now or later; FastAPI's BackgroundTasks.add_task fits
Scheduler = Callable[..., Any]


def normalize_email(raw_email: str | None) -> str:
    """Normalize an email string by stripping whitespace and lowering case."""
    return (raw_email or "").strip().lower()


def _run_inline(func: Callable[..., Any], *args: Any) -> None:
    func(*args)


@dataclass(frozen=True)
class AccountView:
    """Outward representation of an account. Carries no hash and no token."""

    id: str
    email: str
    is_verified: bool
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, account: Account) -> "AccountView":
        return cls(
            id=account.id,
            email=account.email,
            is_verified=account.is_verified,
            created_at=account.created_at,
        )


@dataclass(frozen=True)
class LoginResult:
    """Signed session token for an authenticated account."""

    token: str
    account: AccountView


class AccountService:
    """Orchestrates the account state machine on top of the store."""

    def __init__(
        self,
        store: AccountStore,
        hasher: PasswordHasher,
        session_issuer: SessionIssuer,
        notify: NotificationSink,
        token_generator: TokenGenerator | None = None,
        password_min_length: int = 8,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._session_issuer = session_issuer
        self._notify = notify
        self._token_generator = token_generator or TokenGenerator()
        self._password_min_length = password_min_length
        self._timeout_seconds = timeout_seconds

    def _deadline(self) -> Deadline:
        return Deadline(self._timeout_seconds)

    def _validate_registration(self, email: str, password: str) -> None:
        if not email or not password:
            raise ValidationError("Email and password are required")
        try:
            _email_adapter.validate_python(email)
        except PydanticValidationError:
            raise ValidationError("Email address is invalid") from None
        if len(password) < self._password_min_length:
            raise ValidationError(
                f"Password must be at least {self._password_min_length} characters"
            )
        if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValidationError(
                f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes"
            )

    def _send_verification(self, email: str, token: str) -> None:
        """Deliver a verification email. Failures are logged, never raised."""
        try:
            delivered = self._notify(email, token)
        except Exception:
            logger.exception(f"Failed to send verification email to {email}")
            return
        if delivered is False:
            logger.warning(f"Verification email to {email} was not delivered")

    def _schedule_verification(self, schedule: Scheduler | None, email: str, token: str) -> None:
        (schedule or _run_inline)(self._send_verification, email, token)

    def register(
        self, email: str, password: str, schedule: Scheduler | None = None
    ) -> AccountView:
        """Create an unverified account and send its verification email.

        Raises:
            ValidationError: malformed email or password.
            DuplicateEmailError: the email is already registered.
        """
        email = normalize_email(email)
        self._validate_registration(email, password)

        deadline = self._deadline()
        password_hash = self._hasher.hash(password)
        deadline.check("hash_password")

        account = Account(
            id=self._token_generator.new_id(),
            email=email,
            password_hash=password_hash,
            is_verified=False,
            verification_token=self._token_generator.new_id(),
        )
        token = account.verification_token
        account = self._store.insert(account, deadline)

        logger.info(f"Account registered (pending verification): {account.id}")
        self._schedule_verification(schedule, email, token)
        return AccountView.from_model(account)

    def verify(self, token: str) -> None:
        """Consume a verification token.

        Raises:
            ValidationError: empty token.
            TokenNotFoundError: the token was never issued or is already used.
        """
        token = (token or "").strip()
        if not token:
            raise ValidationError("Token is required")

        self._store.consume_verification_token(token, self._deadline())
        logger.info("Email verified")

    def authenticate(
        self, email: str, password: str, schedule: Scheduler | None = None
    ) -> AccountView:
        """Check credentials of a verified account.

        Raises:
            InvalidCredentialsError: unknown email or wrong password.
            NotVerifiedError: correct credentials, unverified email. A new
                verification token has been issued and mailed.
        """
        email = normalize_email(email)
        password = password or ""
        deadline = self._deadline()

        try:
            account = self._store.find_by_email(email, deadline)
        except NotFoundError:
            # Same cost as a wrong password to prevent email enumeration via timing
            self._hasher.verify_dummy(password)
            logger.info("Login failed: invalid credentials")
            raise InvalidCredentialsError() from None

        if not self._hasher.verify(password, account.password_hash):
            logger.info(f"Login failed: invalid credentials for account {account.id}")
            raise InvalidCredentialsError()
        deadline.check("verify_password")

        if not account.is_verified:
            try:
                self._regenerate(email, schedule, deadline)
            except NotFoundError:
                # Verified between the lookup and the token replacement
                logger.info(f"Account {account.id} verified concurrently with login")
                return AccountView(
                    id=account.id,
                    email=account.email,
                    is_verified=True,
                    created_at=account.created_at,
                )
            logger.info(f"Login blocked, email not verified: {account.id}")
            raise NotVerifiedError(email)

        return AccountView.from_model(account)

    def _regenerate(self, email: str, schedule: Scheduler | None, deadline: Deadline) -> str:
        token = self._token_generator.new_id()
        self._store.replace_verification_token(email, token, deadline)
        logger.info(f"Verification token regenerated for {email}")
        self._schedule_verification(schedule, email, token)
        return token

    def regenerate_token(self, email: str, schedule: Scheduler | None = None) -> str:
        """Replace the verification token of an unverified account and mail it.

        Raises:
            NotFoundError: no such account, or it is already verified.
        """
        return self._regenerate(normalize_email(email), schedule, self._deadline())

    def login(self, email: str, password: str, schedule: Scheduler | None = None) -> LoginResult:
        """Authenticate and issue a signed session token."""
        account = self.authenticate(email, password, schedule)
        token = self._session_issuer.issue_token(account.id, account.email)
        logger.info(f"Account logged in: {account.id}")
        return LoginResult(token=token, account=account)

    def get_account(self, account_id: str) -> AccountView:
        """Look up an account by id.

        Raises:
            NotFoundError: no such account.
        """
        return AccountView.from_model(self._store.find_by_id(account_id, self._deadline()))
