import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update, delete, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import ConcurrentUpdateError, StoreError
from db.account_store import AccountStore, as_utc
from db.models.account import AccountModel
from schemas.account_schema import Account, PendingOTP
from utils.db import safe_commit

logger = logging.getLogger(__name__)


def _to_account(row: AccountModel, include_secrets: bool) -> Account:
    account = Account(
        account_id=row.id,
        name=row.name,
        email=row.email,
        is_verified=bool(row.is_verified),
        version=row.version or 0,
        created_at=as_utc(row.created_at),
    )
    if include_secrets:
        account.hashed_password = row.hashed_password
        if row.otp and row.otp_expires_at:
            account.pending_otp = PendingOTP(code=row.otp, expires_at=as_utc(row.otp_expires_at))
    return account


class SqlAccountStore(AccountStore):
    """Accounts kept in the ``accounts`` table."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self):
        async with self._session_factory() as db:
            try:
                yield db
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Account store query failed: {e}")
                raise StoreError(error=str(e)) from e

    async def _fetch(self, db: AsyncSession, email: str) -> Optional[AccountModel]:
        result = await db.execute(select(AccountModel).where(AccountModel.email == email))
        return result.scalars().first()

    async def find(self, email: str) -> Optional[Account]:
        async with self._session() as db:
            row = await self._fetch(db, email)
            return _to_account(row, include_secrets=False) if row else None

    async def find_including_secrets(self, email: str) -> Optional[Account]:
        async with self._session() as db:
            row = await self._fetch(db, email)
            return _to_account(row, include_secrets=True) if row else None

    async def create(self, name: str, email: str, hashed_password: str, otp: str, otp_expires_at: datetime) -> Account:
        async with self._session() as db:
            row = AccountModel(
                id=str(uuid.uuid4()),
                name=name,
                email=email,
                hashed_password=hashed_password,
                is_verified=False,
                otp=otp,
                otp_expires_at=otp_expires_at,
                version=0,
                created_at=datetime.now(timezone.utc),
            )
            db.add(row)
            await safe_commit(db, conflict_message="User already exists with this email")
            return _to_account(row, include_secrets=True)

    async def update(self, account: Account) -> Account:
        self._require_secrets(account)
        pending = account.pending_otp
        async with self._session() as db:
            result = await db.execute(
                update(AccountModel)
                .where(AccountModel.id == account.account_id, AccountModel.version == account.version)
                .values(
                    name=account.name,
                    hashed_password=account.hashed_password,
                    is_verified=account.is_verified,
                    otp=pending.code if pending else None,
                    otp_expires_at=pending.expires_at if pending else None,
                    version=account.version + 1,
                )
            )
            if result.rowcount == 0:
                await db.rollback()
                raise ConcurrentUpdateError()
            await safe_commit(db)
        return account.model_copy(update={"version": account.version + 1})

    async def delete(self, account_id: str, expected_version: Optional[int] = None) -> bool:
        stmt = delete(AccountModel).where(AccountModel.id == account_id)
        if expected_version is not None:
            stmt = stmt.where(AccountModel.version == expected_version, AccountModel.is_verified.is_(False))
        async with self._session() as db:
            result = await db.execute(stmt)
            await safe_commit(db)
            return result.rowcount > 0

    async def ping(self) -> None:
        async with self._session() as db:
            await db.execute(text("SELECT 1"))
