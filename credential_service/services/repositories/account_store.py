"""Account data access layer."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from credential_service.exceptions import (
    DuplicateEmailError,
    NotFoundError,
    OperationTimeoutError,
    StorageError,
    TokenNotFoundError,
)
from credential_service.models import Account
from credential_service.services.deadline import Deadline

logger = logging.getLogger(__name__)

# SQLSTATE for a statement cancelled by statement_timeout
QUERY_CANCELED_SQLSTATE = "57014"


def is_statement_timeout(error: OperationalError) -> bool:
    """Whether the database cancelled the statement because its timeout elapsed."""
    orig = error.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    return sqlstate == QUERY_CANCELED_SQLSTATE


class AccountStore:
    """Transactional account persistence.

    Every public method runs as one transaction on a fresh session and owns
    the uniqueness and state invariants of accounts. Accounts are returned
    detached.

    Naming conventions:
    - find_* : Query that raises NotFoundError if missing
    - exists_* : Query returning a bool
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _transaction(self, operation: str, deadline: Deadline | None) -> Iterator[Session]:
        """Run one unit of work, translating database failures."""
        if deadline is not None:
            deadline.check(operation)
        try:
            with self._session_factory.begin() as db:
                self._apply_statement_timeout(db, deadline)
                yield db
        except IntegrityError:
            raise
        except PoolTimeoutError as e:
            logger.warning(f"Connection pool exhausted during {operation}")
            raise OperationTimeoutError(operation) from e
        except OperationalError as e:
            if is_statement_timeout(e):
                logger.warning(f"Statement timeout during {operation}")
                raise OperationTimeoutError(operation) from e
            logger.exception(f"Database error during {operation}")
            raise StorageError(f"Database error during {operation}") from e
        except SQLAlchemyError as e:
            logger.exception(f"Database error during {operation}")
            raise StorageError(f"Database error during {operation}") from e

    @staticmethod
    def _apply_statement_timeout(db: Session, deadline: Deadline | None) -> None:
        """Bound every statement of the transaction by the remaining budget (PostgreSQL only)."""
        if deadline is None or db.get_bind().dialect.name != "postgresql":
            return
        timeout_ms = max(1, int(deadline.remaining() * 1000))
        db.execute(
            select(func.set_config("statement_timeout", str(timeout_ms), True))
        )

    @staticmethod
    def _email_taken(db: Session, email: str) -> bool:
        return db.query(Account.id).filter(Account.email == email).first() is not None

    def exists_by_email(self, email: str, deadline: Deadline | None = None) -> bool:
        """Check whether an account already uses this email."""
        with self._transaction("exists_by_email", deadline) as db:
            return self._email_taken(db, email)

    def insert(self, account: Account, deadline: Deadline | None = None) -> Account:
        """Insert a new account.

        The existence check and the insert share one transaction; the unique
        constraint on email catches a concurrent registration that slips past
        the check.

        Raises:
            DuplicateEmailError: if the email is already registered.
        """
        try:
            with self._transaction("insert_account", deadline) as db:
                if self._email_taken(db, account.email):
                    raise DuplicateEmailError(account.email)
                db.add(account)
                db.flush()
                db.refresh(account)
        except IntegrityError as e:
            if self.exists_by_email(account.email, deadline):
                raise DuplicateEmailError(account.email) from e
            logger.exception(f"Integrity error inserting account {account.id}")
            raise StorageError("Failed to insert account") from e
        return account

    def consume_verification_token(self, token: str, deadline: Deadline | None = None) -> None:
        """Mark the holder of a token verified and erase the token.

        A single conditional UPDATE, so two concurrent consumers of the same
        token cannot both succeed.

        Raises:
            TokenNotFoundError: if no unverified account holds the token.
        """
        with self._transaction("consume_verification_token", deadline) as db:
            result = db.execute(
                update(Account)
                .where(
                    Account.verification_token == token,
                    Account.is_verified.is_(False),
                )
                .values(is_verified=True, verification_token=None)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise TokenNotFoundError()

    def find_by_email(self, email: str, deadline: Deadline | None = None) -> Account:
        """Find account by email."""
        with self._transaction("find_by_email", deadline) as db:
            account = db.query(Account).filter(Account.email == email).first()
            if account is None:
                raise NotFoundError("Account", email)
            return account

    def find_by_id(self, account_id: str, deadline: Deadline | None = None) -> Account:
        """Find account by primary key."""
        with self._transaction("find_by_id", deadline) as db:
            account = db.query(Account).filter(Account.id == account_id).first()
            if account is None:
                raise NotFoundError("Account", account_id)
            return account

    def replace_verification_token(
        self, email: str, new_token: str, deadline: Deadline | None = None
    ) -> None:
        """Swap the verification token of an unverified account.

        Raises:
            NotFoundError: if no unverified account has this email.
        """
        with self._transaction("replace_verification_token", deadline) as db:
            result = db.execute(
                update(Account)
                .where(Account.email == email, Account.is_verified.is_(False))
                .values(verification_token=new_token)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError("Unverified account", email)
