from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi.security import OAuth2PasswordBearer
from core.config import settings
from core.exceptions import UnauthorizedError
import logging

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# OAuth2 scheme (used by OpenAPI 'Authorize' button)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/login")

def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.warning(f"Stored password hash could not be verified: {e}")
        return False

def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return pwd_context.hash(password)


class TokenIssuer:
    """Issues and verifies signed, time-bounded session tokens (JWT)."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 60):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def issue(self, account_id: str, email: str, expires_delta: Optional[timedelta] = None) -> str:
        """Create JWT access token bound to the account"""
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self.expire_minutes))
        to_encode = {
            "sub": account_id,
            "email": email,
            "type": "access",
            "iat": now,
            "exp": expire,
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> dict:
        """Decode a token; raise UnauthorizedError unless signature and expiry are valid"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning(f"JWT decode failed: {e}")
            raise UnauthorizedError("Could not validate credentials")
        if not payload.get("sub") or payload.get("type") != "access":
            raise UnauthorizedError("Could not validate credentials")
        return payload


token_issuer = TokenIssuer(
    settings.SECRET_KEY,
    algorithm=settings.ALGORITHM,
    expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
)

def verify_token(token: str) -> Optional[dict]:
    """Verify and decode JWT token, returning None when invalid"""
    try:
        return token_issuer.verify(token)
    except UnauthorizedError:
        return None
