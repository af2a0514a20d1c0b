"""Exceptions raised by the account lifecycle.

Domain failures describe an expected outcome the caller should see
(duplicate email, bad token, wrong credentials, unverified account).
Internal failures derive from InternalServiceError and are reported to
callers only as an opaque server-side error.
"""


class CredentialServiceError(Exception):
    """Base exception for credential service operations."""


class ValidationError(CredentialServiceError):
    """Malformed or missing input."""


class DuplicateEmailError(CredentialServiceError):
    """An account with this email already exists."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Account with email={email} already exists")


class TokenNotFoundError(CredentialServiceError):
    """No account currently holds the verification token."""

    def __init__(self) -> None:
        super().__init__("Verification token not found")


class NotFoundError(CredentialServiceError):
    """Entity not found in database."""

    def __init__(self, entity_type: str, identifier: str):
        self.entity_type = entity_type
        self.identifier = identifier
        super().__init__(f"{entity_type} not found: {identifier}")


class InvalidCredentialsError(CredentialServiceError):
    """Unknown email or wrong password. The two are deliberately indistinguishable."""

    def __init__(self) -> None:
        super().__init__("Invalid email or password")


class NotVerifiedError(CredentialServiceError):
    """Credentials are correct but the email address is not verified yet."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email not verified: {email}")


class OperationTimeoutError(CredentialServiceError):
    """A request-scoped deadline expired."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Deadline exceeded during {operation}")


class InternalServiceError(CredentialServiceError):
    """Base exception for infrastructure failures."""


class HashingError(InternalServiceError):
    """Password hashing or hash verification failed."""


class SigningError(InternalServiceError):
    """Session token could not be signed."""


class EntropyError(InternalServiceError):
    """The random source is unavailable."""


class StorageError(InternalServiceError):
    """The database failed or is unreachable."""


class ConfigurationError(InternalServiceError):
    """Required configuration is missing or invalid."""
