from functools import lru_cache
from fastapi import Depends
from core.config import settings, AccountLifecycleConfig
from core.security import oauth2_scheme, token_issuer
from db.account_store import get_account_store
from schemas.account_schema import AccountSummary
from services.account_service import AccountLifecycleManager
from services.notification_service import EmailNotificationSink

@lru_cache(maxsize=1)
def get_account_manager() -> AccountLifecycleManager:
    config = AccountLifecycleConfig.from_settings(settings)
    return AccountLifecycleManager(
        store=get_account_store(),
        notifier=EmailNotificationSink(
            sender_name=config.sender_identity,
            expire_minutes=config.otp_validity_minutes,
        ),
        token_issuer=token_issuer,
        config=config,
    )

async def get_current_account(
    token: str = Depends(oauth2_scheme),
    manager: AccountLifecycleManager = Depends(get_account_manager),
) -> AccountSummary:
    payload = manager.token_issuer.verify(token)
    return await manager.get_profile(payload["sub"], payload.get("email") or "")
