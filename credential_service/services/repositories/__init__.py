"""Persistence layer for accounts.

The account store owns every query and every uniqueness or state check
that must hold under concurrency. The account service never touches the
ORM session directly.

Dependency direction: AccountService -> AccountStore -> Account model
"""

from .account_store import AccountStore

__all__ = [
    "AccountStore",
]
