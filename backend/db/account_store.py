"""Account store contract shared by the Mongo and SQL backends.

Stores are keyed by email and must give per-key read-then-write safety: every
``update`` is applied only if the stored ``version`` still matches the version
that was read, otherwise ``ConcurrentUpdateError`` is raised.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from core.config import settings
from schemas.account_schema import Account


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Drivers hand back naive UTC datetimes; make them timezone-aware."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AccountStore(ABC):

    @abstractmethod
    async def find(self, email: str) -> Optional[Account]:
        """Account without its password hash or pending OTP, or None"""

    @abstractmethod
    async def find_including_secrets(self, email: str) -> Optional[Account]:
        """Account with password hash and pending OTP, or None"""

    @abstractmethod
    async def create(self, name: str, email: str, hashed_password: str, otp: str, otp_expires_at: datetime) -> Account:
        """Insert an unverified account; ConflictError if the email is taken"""

    @abstractmethod
    async def update(self, account: Account) -> Account:
        """Replace the mutable fields and return the record at its new version"""

    @abstractmethod
    async def delete(self, account_id: str, expected_version: Optional[int] = None) -> bool:
        """Delete an account.

        With ``expected_version`` the delete only applies to an unverified
        account still at that version. Returns whether a record was removed.
        """

    @abstractmethod
    async def ping(self) -> None:
        """Raise if the backing database is unreachable"""

    @staticmethod
    def _require_secrets(account: Account) -> None:
        # a record read without secrets would wipe the stored hash on a full replace
        if not account.hashed_password:
            raise ValueError("Account must be loaded with secrets before it can be updated")


_store: Optional[AccountStore] = None

def get_account_store() -> AccountStore:
    """Store for the configured backend (Mongo when USE_MONGO, SQL otherwise)."""
    global _store
    if _store is not None:
        return _store
    if settings.USE_MONGO:
        from db.mongodb import get_mongo_db
        from db.mongo_account_store import MongoAccountStore
        _store = MongoAccountStore(get_mongo_db())
    else:
        from db.session import SessionLocal
        from db.sql_account_store import SqlAccountStore
        _store = SqlAccountStore(SessionLocal)
    return _store
