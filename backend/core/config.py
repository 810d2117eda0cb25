from dataclasses import dataclass
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # App settings
    APP_NAME: str = "OTP Auth Service"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    API_PREFIX: str = "/api/auth"

    # Security settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    BCRYPT_ROUNDS: int = 12

    # OTP settings
    OTP_LENGTH: int = 6
    OTP_EXPIRE_MINUTES: int = 10

    # Database settings (SQL, used when USE_MONGO is false)
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_POOL_TIMEOUT: int = 10
    DB_PRE_PING: bool = True
    DB_CONNECT_TIMEOUT: int = 10

    # MongoDB
    USE_MONGO: bool = True
    MONGO_URI: Optional[str] = None
    MONGO_DB: str = "otp_auth"

    # CORS settings
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TTL_DAYS: int = 7

    # SMTP / Email settings
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: Optional[str] = None
    SMTP_FROM_NAME: str = "Your App"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    SMTP_TIMEOUT: int = 15
    SMTP_DEBUG: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

# Create settings instance
settings = Settings()

# Validate required settings
if not settings.SECRET_KEY:
    raise ValueError("SECRET_KEY environment variable is required")

if settings.USE_MONGO and not settings.MONGO_URI:
    raise ValueError("MONGO_URI environment variable is required when USE_MONGO is true")

if not settings.USE_MONGO and not settings.DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required when USE_MONGO is false")


@dataclass(frozen=True)
class AccountLifecycleConfig:
    """Options the account lifecycle manager is constructed with."""
    otp_length: int = 6
    otp_validity_minutes: int = 10
    token_validity_minutes: int = 60 * 24 * 7
    sender_identity: str = "Your App"

    @classmethod
    def from_settings(cls, source: Settings) -> "AccountLifecycleConfig":
        return cls(
            otp_length=source.OTP_LENGTH,
            otp_validity_minutes=source.OTP_EXPIRE_MINUTES,
            token_validity_minutes=source.ACCESS_TOKEN_EXPIRE_MINUTES,
            sender_identity=source.SMTP_FROM_NAME,
        )
