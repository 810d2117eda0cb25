"""
Unit tests for password hashing and session tokens.
"""
import pytest
from datetime import timedelta
from jose import jwt

from core.exceptions import UnauthorizedError
from core.security import TokenIssuer, get_password_hash, verify_password, verify_token, token_issuer as default_issuer


@pytest.mark.unit
@pytest.mark.auth
class TestPasswordHashing:

    def test_hash_verifies(self):
        digest = get_password_hash("pw123")
        assert digest != "pw123"
        assert verify_password("pw123", digest)

    def test_wrong_password_fails(self):
        assert not verify_password("other", get_password_hash("pw123"))

    def test_salted(self):
        assert get_password_hash("pw123") != get_password_hash("pw123")

    def test_missing_or_malformed_hash_fails(self):
        assert not verify_password("pw123", None)
        assert not verify_password("pw123", "")
        assert not verify_password("pw123", "not-a-hash")


@pytest.mark.unit
@pytest.mark.auth
class TestTokenIssuer:

    def test_issue_and_verify(self, token_issuer: TokenIssuer):
        token = token_issuer.issue("acc-1", "alice@x.com")
        payload = token_issuer.verify(token)
        assert payload["sub"] == "acc-1"
        assert payload["email"] == "alice@x.com"
        assert payload["exp"] > payload["iat"]

    def test_expired_token_rejected(self, token_issuer: TokenIssuer):
        token = token_issuer.issue("acc-1", "alice@x.com", expires_delta=timedelta(seconds=-5))
        with pytest.raises(UnauthorizedError):
            token_issuer.verify(token)

    def test_foreign_signature_rejected(self, token_issuer: TokenIssuer):
        token = TokenIssuer("another-secret").issue("acc-1", "alice@x.com")
        with pytest.raises(UnauthorizedError):
            token_issuer.verify(token)

    def test_garbage_rejected(self, token_issuer: TokenIssuer):
        with pytest.raises(UnauthorizedError):
            token_issuer.verify("mock.jwt.token")

    def test_token_without_subject_rejected(self, token_issuer: TokenIssuer):
        token = jwt.encode({"type": "access"}, token_issuer.secret_key, algorithm=token_issuer.algorithm)
        with pytest.raises(UnauthorizedError):
            token_issuer.verify(token)

    def test_verify_token_returns_none_when_invalid(self):
        assert verify_token("mock.jwt.token") is None
        assert verify_token(default_issuer.issue("acc-2", "bob@x.com"))["sub"] == "acc-2"
