from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class PendingOTP(BaseModel):
    code: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now

class AccountSummary(BaseModel):
    account_id: str
    name: str
    email: str
    is_verified: bool

class Account(BaseModel):
    """Stored account record.

    ``hashed_password`` and ``pending_otp`` are only populated by reads that
    include secrets; ``pending_otp`` is None whenever no flow is in progress.
    """
    account_id: str
    name: str
    email: str
    is_verified: bool = False
    hashed_password: Optional[str] = None
    pending_otp: Optional[PendingOTP] = None
    version: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        extra = "ignore"

    def summary(self) -> AccountSummary:
        return AccountSummary(
            account_id=self.account_id,
            name=self.name,
            email=self.email,
            is_verified=self.is_verified,
        )

class RegisteredAccount(BaseModel):
    account_id: str
    email: str
    name: str

class AuthResult(BaseModel):
    account: AccountSummary
    token: str
