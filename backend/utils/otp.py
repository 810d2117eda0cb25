import secrets
from datetime import datetime, timedelta


def generate_otp(length: int = 6) -> str:
    """Return a numeric OTP drawn uniformly from [10**(length-1), 10**length - 1].

    The lower bound keeps every code exactly ``length`` digits with no leading zero.
    """
    if length < 1:
        raise ValueError("OTP length must be positive")
    low = 10 ** (length - 1)
    high = 10 ** length - 1
    return str(low + secrets.randbelow(high - low + 1))


def otp_expiration(now: datetime, minutes: int = 10) -> datetime:
    """Expiration timestamp for an OTP issued at ``now``"""
    return now + timedelta(minutes=minutes)
