"""
Unit tests for OTP generation and expiry.
"""
import pytest
from datetime import datetime, timedelta, timezone

from utils.otp import generate_otp, otp_expiration


@pytest.mark.unit
class TestGenerateOtp:

    def test_default_code_is_six_digits_in_range(self):
        for _ in range(200):
            code = generate_otp()
            assert len(code) == 6
            assert code.isdigit()
            assert 100000 <= int(code) <= 999999

    def test_custom_length(self):
        code = generate_otp(8)
        assert len(code) == 8
        assert 10_000_000 <= int(code) <= 99_999_999

    def test_codes_vary(self):
        assert len({generate_otp() for _ in range(50)}) > 1

    def test_rejects_non_positive_length(self):
        with pytest.raises(ValueError):
            generate_otp(0)


@pytest.mark.unit
class TestOtpExpiration:

    def test_default_is_ten_minutes(self):
        now = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)
        assert otp_expiration(now) == now + timedelta(minutes=10)

    def test_configured_duration(self):
        now = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)
        assert otp_expiration(now, 3) == datetime(2026, 3, 1, 8, 33, tzinfo=timezone.utc)
