"""
Database tests for the Mongo account store against a mocked collection.
"""
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from bson import ObjectId
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from core.exceptions import ConcurrentUpdateError, ConflictError, StoreError
from db.mongo_account_store import SECRET_FIELDS, MongoAccountStore
from schemas.account_schema import PendingOTP

EXPIRES = datetime(2026, 1, 15, 12, 10, tzinfo=timezone.utc)
ACCOUNT_ID = ObjectId()


def _doc(**overrides):
    doc = {
        "_id": ACCOUNT_ID,
        "name": "Alice",
        "email": "alice@x.com",
        "hashed_password": "hashed-pw",
        "is_verified": False,
        "otp": "123456",
        # the driver hands back naive UTC datetimes
        "otp_expires_at": EXPIRES.replace(tzinfo=None),
        "version": 2,
        "created_at": datetime(2026, 1, 15, 12, 0),
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def mock_db():
    db = MagicMock()
    db.accounts.find_one = AsyncMock()
    db.accounts.insert_one = AsyncMock()
    db.accounts.update_one = AsyncMock()
    db.accounts.delete_one = AsyncMock()
    db.command = AsyncMock()
    return db


@pytest.fixture
def mongo_store(mock_db):
    return MongoAccountStore(mock_db)


@pytest.mark.database
class TestMongoAccountStore:

    @pytest.mark.asyncio
    async def test_find_projects_out_secrets(self, mongo_store, mock_db):
        mock_db.accounts.find_one.return_value = _doc(hashed_password=None, otp=None, otp_expires_at=None)

        account = await mongo_store.find("alice@x.com")

        mock_db.accounts.find_one.assert_awaited_once_with({"email": "alice@x.com"}, SECRET_FIELDS)
        assert account.account_id == str(ACCOUNT_ID)
        assert account.hashed_password is None
        assert account.pending_otp is None

    @pytest.mark.asyncio
    async def test_find_including_secrets(self, mongo_store, mock_db):
        mock_db.accounts.find_one.return_value = _doc()

        account = await mongo_store.find_including_secrets("alice@x.com")

        mock_db.accounts.find_one.assert_awaited_once_with({"email": "alice@x.com"})
        assert account.hashed_password == "hashed-pw"
        assert account.pending_otp == PendingOTP(code="123456", expires_at=EXPIRES)
        assert account.version == 2

    @pytest.mark.asyncio
    async def test_find_missing(self, mongo_store, mock_db):
        mock_db.accounts.find_one.return_value = None
        assert await mongo_store.find("ghost@x.com") is None

    @pytest.mark.asyncio
    async def test_create(self, mongo_store, mock_db):
        mock_db.accounts.insert_one.return_value = MagicMock(inserted_id=ACCOUNT_ID)

        account = await mongo_store.create("Alice", "alice@x.com", "hashed-pw", "123456", EXPIRES)

        inserted = mock_db.accounts.insert_one.await_args.args[0]
        assert inserted["is_verified"] is False
        assert inserted["version"] == 0
        assert account.account_id == str(ACCOUNT_ID)
        assert account.pending_otp.code == "123456"

    @pytest.mark.asyncio
    async def test_duplicate_key_is_conflict(self, mongo_store, mock_db):
        mock_db.accounts.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

        with pytest.raises(ConflictError) as exc:
            await mongo_store.create("Alice", "alice@x.com", "hashed-pw", "123456", EXPIRES)
        assert exc.value.message == "User already exists with this email"

    @pytest.mark.asyncio
    async def test_driver_failure_is_store_error(self, mongo_store, mock_db):
        mock_db.accounts.find_one.side_effect = ServerSelectionTimeoutError("no primary")

        with pytest.raises(StoreError) as exc:
            await mongo_store.find("alice@x.com")
        assert exc.value.message == "Server error"
        assert "no primary" in exc.value.error

    @pytest.mark.asyncio
    async def test_update_matches_version_and_unsets_consumed_otp(self, mongo_store, mock_db):
        mock_db.accounts.find_one.return_value = _doc()
        mock_db.accounts.update_one.return_value = MagicMock(matched_count=1)
        account = await mongo_store.find_including_secrets("alice@x.com")

        updated = await mongo_store.update(account.model_copy(update={"is_verified": True, "pending_otp": None}))

        query, changes = mock_db.accounts.update_one.await_args.args
        assert query == {"_id": ACCOUNT_ID, "version": 2}
        assert changes["$set"]["is_verified"] is True
        assert changes["$set"]["version"] == 3
        assert changes["$unset"] == {"otp": "", "otp_expires_at": ""}
        assert updated.version == 3

    @pytest.mark.asyncio
    async def test_update_sets_pending_otp(self, mongo_store, mock_db):
        mock_db.accounts.find_one.return_value = _doc()
        mock_db.accounts.update_one.return_value = MagicMock(matched_count=1)
        account = await mongo_store.find_including_secrets("alice@x.com")

        await mongo_store.update(account.model_copy(update={"pending_otp": PendingOTP(code="654321", expires_at=EXPIRES)}))

        _, changes = mock_db.accounts.update_one.await_args.args
        assert changes["$set"]["otp"] == "654321"
        assert changes["$set"]["otp_expires_at"] == EXPIRES
        assert "$unset" not in changes

    @pytest.mark.asyncio
    async def test_stale_update_rejected(self, mongo_store, mock_db):
        mock_db.accounts.find_one.return_value = _doc()
        mock_db.accounts.update_one.return_value = MagicMock(matched_count=0)
        account = await mongo_store.find_including_secrets("alice@x.com")

        with pytest.raises(ConcurrentUpdateError):
            await mongo_store.update(account)

    @pytest.mark.asyncio
    async def test_update_requires_secrets(self, mongo_store, mock_db):
        mock_db.accounts.find_one.return_value = _doc(hashed_password=None)
        account = await mongo_store.find("alice@x.com")

        with pytest.raises(ValueError):
            await mongo_store.update(account)
        mock_db.accounts.update_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_guarded_delete_query(self, mongo_store, mock_db):
        mock_db.accounts.delete_one.return_value = MagicMock(deleted_count=1)

        assert await mongo_store.delete(str(ACCOUNT_ID), expected_version=0) is True
        mock_db.accounts.delete_one.assert_awaited_once_with(
            {"_id": ACCOUNT_ID, "version": 0, "is_verified": False}
        )

    @pytest.mark.asyncio
    async def test_delete_reports_nothing_removed(self, mongo_store, mock_db):
        mock_db.accounts.delete_one.return_value = MagicMock(deleted_count=0)
        assert await mongo_store.delete(str(ACCOUNT_ID)) is False
        mock_db.accounts.delete_one.assert_awaited_once_with({"_id": ACCOUNT_ID})

    @pytest.mark.asyncio
    async def test_malformed_id(self, mongo_store):
        with pytest.raises(StoreError):
            await mongo_store.delete("not-an-object-id")

    @pytest.mark.asyncio
    async def test_ping(self, mongo_store, mock_db):
        await mongo_store.ping()
        mock_db.command.assert_awaited_once_with({"ping": 1})
