import asyncio
import enum
import logging
from abc import ABC, abstractmethod
from typing import Optional

from core.exceptions import DeliveryError
from utils.email import send_password_reset_email, send_verification_otp_email

logger = logging.getLogger(__name__)


class NotificationPurpose(str, enum.Enum):
    VERIFICATION = "verification"
    PASSWORD_RESET = "password_reset"


class NotificationSink(ABC):

    @abstractmethod
    async def send(self, recipient: str, purpose: NotificationPurpose, code: str, display_name: str) -> None:
        """Dispatch ``code`` to ``recipient``; raise DeliveryError on failure"""


class EmailNotificationSink(NotificationSink):
    """Delivers OTP codes by SMTP email.

    smtplib blocks, so each send runs in a worker thread.
    """

    def __init__(self, sender_name: Optional[str] = None, expire_minutes: int = 10):
        self.sender_name = sender_name
        self.expire_minutes = expire_minutes

    async def send(self, recipient: str, purpose: NotificationPurpose, code: str, display_name: str) -> None:
        if purpose == NotificationPurpose.VERIFICATION:
            sender = send_verification_otp_email
        elif purpose == NotificationPurpose.PASSWORD_RESET:
            sender = send_password_reset_email
        else:
            raise ValueError(f"Unknown notification purpose: {purpose}")
        sent = await asyncio.to_thread(
            sender,
            recipient,
            code,
            display_name or "User",
            self.expire_minutes,
            self.sender_name,
        )
        if not sent:
            raise DeliveryError(error=f"{purpose.value} email to {recipient} was not delivered")
