"""SQLAlchemy ORM models."""

from credential_service.models.account import Account

__all__ = [
    "Account",
]
