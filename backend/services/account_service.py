"""Account lifecycle: registration, OTP verification, login and password recovery.

An account moves from PendingVerification to Verified exactly once, on the
first successful OTP check. A verified account may additionally carry a
pending recovery OTP (PendingRecovery) until the password is reset.

Steps that leave the store inconsistent when a later step fails are undone
before the error is raised: a registration whose verification email cannot be
sent deletes the fresh account, and a failed OTP email clears the OTP it was
carrying.
"""
import enum
import functools
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from email_validator import EmailNotValidError, validate_email

from core.config import AccountLifecycleConfig
from core.exceptions import (
    AuthServiceError,
    ConflictError,
    DeliveryError,
    ExpiredOTPError,
    InvalidOTPError,
    NotFoundError,
    StoreError,
    UnauthorizedError,
    ValidationError,
    invalid_credentials,
)
from core.security import TokenIssuer, get_password_hash, verify_password
from db.account_store import AccountStore
from schemas.account_schema import Account, AccountSummary, AuthResult, PendingOTP, RegisteredAccount
from services.notification_service import NotificationPurpose, NotificationSink
from utils.otp import generate_otp, otp_expiration
from utils.timing import timeit

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AccountState(str, enum.Enum):
    UNREGISTERED = "unregistered"
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    PENDING_RECOVERY = "pending_recovery"


def account_state(account: Optional[Account]) -> AccountState:
    """State of a record read with secrets (the pending OTP must be loaded)."""
    if account is None:
        return AccountState.UNREGISTERED
    if not account.is_verified:
        return AccountState.PENDING_VERIFICATION
    if account.pending_otp is not None:
        return AccountState.PENDING_RECOVERY
    return AccountState.VERIFIED


class RollbackOutcome(enum.Enum):
    PERFORMED = "performed"
    FAILED = "failed"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _require(message: str, *values) -> None:
    for value in values:
        if value is None or not str(value).strip():
            raise ValidationError(message)


def _server_errors(label: str):
    """Re-raise anything that is not already a service error as a generic server error."""
    def _decorate(func):
        @functools.wraps(func)
        async def _wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except AuthServiceError:
                raise
            except Exception as e:
                logger.error(f"{label} error: {e}")
                raise StoreError(f"Server error during {label}", error=str(e)) from e
        return _wrapper
    return _decorate


class AccountLifecycleManager:

    def __init__(
        self,
        store: AccountStore,
        notifier: NotificationSink,
        token_issuer: TokenIssuer,
        config: Optional[AccountLifecycleConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.notifier = notifier
        self.token_issuer = token_issuer
        self.config = config or AccountLifecycleConfig()
        self.clock = clock

    # helpers

    def _email(self, email: str) -> str:
        email = normalize_email(email)
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValidationError("Please provide a valid email address", error=str(e)) from e
        return email

    def _new_otp(self) -> Tuple[str, datetime]:
        return (
            generate_otp(self.config.otp_length),
            otp_expiration(self.clock(), self.config.otp_validity_minutes),
        )

    def _check_otp(self, account: Account, code: str) -> None:
        pending = account.pending_otp
        # no pending code (never issued, or already consumed) reads as a wrong code
        if pending is None or pending.code != code:
            raise InvalidOTPError("Invalid OTP")
        if pending.is_expired(self.clock()):
            raise ExpiredOTPError("OTP has expired. Please request a new one.")

    def _issue_token(self, account: Account) -> str:
        return self.token_issuer.issue(
            account.account_id,
            account.email,
            expires_delta=timedelta(minutes=self.config.token_validity_minutes),
        )

    async def _dispatch(self, account: Account, purpose: NotificationPurpose, code: str) -> None:
        try:
            await self.notifier.send(account.email, purpose, code, account.name)
        except DeliveryError:
            raise
        except Exception as e:
            raise DeliveryError(error=str(e)) from e

    async def _discard_unverified(self, account: Account) -> RollbackOutcome:
        try:
            deleted = await self.store.delete(account.account_id, expected_version=account.version)
        except Exception as e:
            logger.critical(
                f"Inconsistent state: could not delete unverified account {account.account_id} "
                f"after verification email failed: {e}"
            )
            return RollbackOutcome.FAILED
        if not deleted:
            logger.critical(
                f"Inconsistent state: unverified account {account.account_id} changed before "
                "its compensating delete; left in place"
            )
            return RollbackOutcome.FAILED
        logger.info(f"Deleted account {account.account_id} after verification email failed")
        return RollbackOutcome.PERFORMED

    async def _clear_pending_otp(self, account: Account) -> RollbackOutcome:
        try:
            await self.store.update(account.model_copy(update={"pending_otp": None}))
        except Exception as e:
            logger.critical(f"Inconsistent state: could not clear undelivered OTP for account {account.account_id}: {e}")
            return RollbackOutcome.FAILED
        return RollbackOutcome.PERFORMED

    async def _require_account(self, email: str, message: str = "User not found") -> Account:
        account = await self.store.find_including_secrets(email)
        if account is None:
            raise NotFoundError(message)
        return account

    # operations

    @timeit("register")
    @_server_errors("signup")
    async def register(self, name: str, email: str, password: str) -> RegisteredAccount:
        _require("Please provide all required fields", name, email, password)
        email = self._email(email)
        name = name.strip()

        if await self.store.find(email) is not None:
            raise ConflictError("User already exists with this email")

        otp, expires_at = self._new_otp()
        account = await self.store.create(name, email, get_password_hash(password), otp, expires_at)

        try:
            await self._dispatch(account, NotificationPurpose.VERIFICATION, otp)
        except DeliveryError as e:
            outcome = await self._discard_unverified(account)
            raise DeliveryError(
                "Error sending verification email. Please try again.",
                error=e.error,
                rolled_back=outcome is RollbackOutcome.PERFORMED,
            ) from e

        logger.info(f"Registered account {account.account_id}")
        return RegisteredAccount(account_id=account.account_id, email=account.email, name=account.name)

    @timeit("verify_otp")
    @_server_errors("OTP verification")
    async def verify_otp(self, email: str, code: str) -> AuthResult:
        _require("Please provide email and OTP", email, code)
        email = self._email(email)

        account = await self._require_account(email)
        self._check_otp(account, str(code).strip())

        account = await self.store.update(account.model_copy(update={"is_verified": True, "pending_otp": None}))
        logger.info(f"Verified account {account.account_id}")
        return AuthResult(account=account.summary(), token=self._issue_token(account))

    @timeit("login")
    @_server_errors("login")
    async def login(self, email: str, password: str) -> AuthResult:
        _require("Please provide email and password", email, password)
        email = self._email(email)

        account = await self.store.find_including_secrets(email)
        if account is None:
            raise invalid_credentials()
        if not account.is_verified:
            raise UnauthorizedError("Please verify your email first")
        if not verify_password(password, account.hashed_password):
            raise invalid_credentials()

        return AuthResult(account=account.summary(), token=self._issue_token(account))

    @timeit("forgot_password")
    @_server_errors("password reset request")
    async def forgot_password(self, email: str) -> str:
        _require("Please provide email", email)
        email = self._email(email)

        account = await self._require_account(email, "No user found with this email")
        otp, expires_at = self._new_otp()
        account = await self.store.update(
            account.model_copy(update={"pending_otp": PendingOTP(code=otp, expires_at=expires_at)})
        )

        try:
            await self._dispatch(account, NotificationPurpose.PASSWORD_RESET, otp)
        except DeliveryError as e:
            outcome = await self._clear_pending_otp(account)
            raise DeliveryError(
                "Error sending reset email. Please try again.",
                error=e.error,
                rolled_back=outcome is RollbackOutcome.PERFORMED,
            ) from e

        return "Password reset OTP sent to your email"

    @timeit("reset_password")
    @_server_errors("password reset")
    async def reset_password(self, email: str, code: str, new_password: str) -> str:
        _require("Please provide email, OTP, and new password", email, code, new_password)
        email = self._email(email)

        account = await self._require_account(email)
        self._check_otp(account, str(code).strip())

        await self.store.update(
            account.model_copy(update={"hashed_password": get_password_hash(new_password), "pending_otp": None})
        )
        logger.info(f"Password reset for account {account.account_id}")
        return "Password reset successful. You can now login with your new password."

    @timeit("resend_otp")
    @_server_errors("OTP resend")
    async def resend_otp(self, email: str) -> str:
        _require("Please provide email", email)
        email = self._email(email)

        account = await self._require_account(email)
        if account.is_verified:
            raise ConflictError("User is already verified")

        otp, expires_at = self._new_otp()
        account = await self.store.update(
            account.model_copy(update={"pending_otp": PendingOTP(code=otp, expires_at=expires_at)})
        )

        try:
            await self._dispatch(account, NotificationPurpose.VERIFICATION, otp)
        except DeliveryError as e:
            outcome = await self._clear_pending_otp(account)
            raise DeliveryError(
                "Error sending OTP email. Please try again.",
                error=e.error,
                rolled_back=outcome is RollbackOutcome.PERFORMED,
            ) from e

        return "New OTP sent to your email"

    @_server_errors("profile lookup")
    async def get_profile(self, account_id: str, email: str) -> AccountSummary:
        account = await self.store.find(normalize_email(email or ""))
        if account is None or account.account_id != account_id:
            raise UnauthorizedError("Not authorized, user not found")
        return account.summary()
