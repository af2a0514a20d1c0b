"""Core services: hashing, tokens, account lifecycle and session issuance."""

from .account_service import AccountService, AccountView, LoginResult
from .email_service import EmailService
from .password_hasher import PasswordHasher
from .session_issuer import SessionIssuer
from .token_generator import TokenGenerator

__all__ = [
    "AccountService",
    "AccountView",
    "EmailService",
    "LoginResult",
    "PasswordHasher",
    "SessionIssuer",
    "TokenGenerator",
]
