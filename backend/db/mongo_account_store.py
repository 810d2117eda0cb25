import functools
import logging
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from core.exceptions import ConcurrentUpdateError, ConflictError, StoreError
from db.account_store import AccountStore, as_utc
from schemas.account_schema import Account, PendingOTP

logger = logging.getLogger(__name__)

SECRET_FIELDS = {"hashed_password": 0, "otp": 0, "otp_expires_at": 0}


def _translate_errors(func):
    @functools.wraps(func)
    async def _wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except DuplicateKeyError as e:
            raise ConflictError("User already exists with this email") from e
        except PyMongoError as e:
            logger.error(f"Mongo {func.__name__} failed: {e}")
            raise StoreError(error=str(e)) from e
    return _wrapper


def _to_account(doc: dict) -> Account:
    pending = None
    if doc.get("otp") and doc.get("otp_expires_at"):
        pending = PendingOTP(code=doc["otp"], expires_at=as_utc(doc["otp_expires_at"]))
    return Account(
        account_id=str(doc["_id"]),
        name=doc.get("name", ""),
        email=doc["email"],
        is_verified=bool(doc.get("is_verified", False)),
        hashed_password=doc.get("hashed_password"),
        pending_otp=pending,
        version=int(doc.get("version", 0)),
        created_at=as_utc(doc.get("created_at")),
    )


class MongoAccountStore(AccountStore):
    """Accounts kept in the ``accounts`` collection, unique on ``email``."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db

    @property
    def _accounts(self):
        return self._db.accounts

    @_translate_errors
    async def find(self, email: str) -> Optional[Account]:
        doc = await self._accounts.find_one({"email": email}, SECRET_FIELDS)
        return _to_account(doc) if doc else None

    @_translate_errors
    async def find_including_secrets(self, email: str) -> Optional[Account]:
        doc = await self._accounts.find_one({"email": email})
        return _to_account(doc) if doc else None

    @_translate_errors
    async def create(self, name: str, email: str, hashed_password: str, otp: str, otp_expires_at: datetime) -> Account:
        doc = {
            "name": name,
            "email": email,
            "hashed_password": hashed_password,
            "is_verified": False,
            "otp": otp,
            "otp_expires_at": otp_expires_at,
            "version": 0,
            "created_at": datetime.now(timezone.utc),
        }
        result = await self._accounts.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _to_account(doc)

    @_translate_errors
    async def update(self, account: Account) -> Account:
        self._require_secrets(account)
        changes = {
            "$set": {
                "name": account.name,
                "hashed_password": account.hashed_password,
                "is_verified": account.is_verified,
                "version": account.version + 1,
            }
        }
        if account.pending_otp is not None:
            changes["$set"]["otp"] = account.pending_otp.code
            changes["$set"]["otp_expires_at"] = account.pending_otp.expires_at
        else:
            changes["$unset"] = {"otp": "", "otp_expires_at": ""}
        result = await self._accounts.update_one(
            {"_id": self._object_id(account.account_id), "version": account.version},
            changes,
        )
        if result.matched_count == 0:
            raise ConcurrentUpdateError()
        return account.model_copy(update={"version": account.version + 1})

    @_translate_errors
    async def delete(self, account_id: str, expected_version: Optional[int] = None) -> bool:
        query = {"_id": self._object_id(account_id)}
        if expected_version is not None:
            query.update({"version": expected_version, "is_verified": False})
        result = await self._accounts.delete_one(query)
        return result.deleted_count > 0

    @_translate_errors
    async def ping(self) -> None:
        await self._db.command({"ping": 1})

    @staticmethod
    def _object_id(account_id: str) -> ObjectId:
        try:
            return ObjectId(account_id)
        except (InvalidId, TypeError) as e:
            raise StoreError(error=f"Invalid account id {account_id!r}") from e
