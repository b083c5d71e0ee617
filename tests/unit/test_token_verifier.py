"""Unit tests for bearer token verification."""

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from waffle_intel.commons.security import TokenVerifier
from waffle_intel.domain.exceptions import (
    AuthenticationRequiredError,
    InvalidTokenError,
)

SECRET = "test-secret-with-enough-length-for-hs256"


def _token(secret: str = SECRET, **claims) -> str:
    payload = {
        "sub": "user-1",
        "aud": "authenticated",
        "email": "ana@example.com",
        "role": "authenticated",
        "exp": datetime.now(UTC) + timedelta(minutes=5),
    }
    payload.update(claims)
    payload = {k: v for k, v in payload.items() if v is not None}
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def verifier():
    return TokenVerifier(secret=SECRET, audience="authenticated")


class TestExtractBearer:
    """Tests for Authorization header parsing."""

    def test_missing_header(self):
        with pytest.raises(AuthenticationRequiredError):
            TokenVerifier.extract_bearer(None)

    def test_wrong_scheme(self):
        with pytest.raises(AuthenticationRequiredError):
            TokenVerifier.extract_bearer("Basic abc")

    def test_empty_token(self):
        with pytest.raises(AuthenticationRequiredError):
            TokenVerifier.extract_bearer("Bearer   ")

    def test_case_insensitive_scheme(self):
        assert TokenVerifier.extract_bearer("bearer abc.def") == "abc.def"


class TestVerify:
    """Tests for signature and claim checks."""

    def test_valid_token(self, verifier):
        user = verifier.authenticate(f"Bearer {_token()}")
        assert user.user_id == "user-1"
        assert user.email == "ana@example.com"
        assert user.role == "authenticated"
        assert user.claims["aud"] == "authenticated"

    def test_expired_token(self, verifier):
        token = _token(exp=datetime.now(UTC) - timedelta(minutes=1))
        with pytest.raises(InvalidTokenError, match="expired"):
            verifier.verify(token)

    def test_leeway_accepts_slightly_expired_token(self):
        verifier = TokenVerifier(secret=SECRET, audience=None, leeway_seconds=60)
        token = _token(exp=datetime.now(UTC) - timedelta(seconds=10))
        assert verifier.verify(token).user_id == "user-1"

    def test_wrong_secret(self, verifier):
        with pytest.raises(InvalidTokenError):
            verifier.verify(_token(secret="another-secret-of-sufficient-length!!"))

    def test_wrong_audience(self, verifier):
        with pytest.raises(InvalidTokenError):
            verifier.verify(_token(aud="someone-else"))

    def test_audience_check_can_be_disabled(self):
        verifier = TokenVerifier(secret=SECRET, audience=None)
        assert verifier.verify(_token(aud="anything")).user_id == "user-1"

    def test_missing_subject(self, verifier):
        with pytest.raises(InvalidTokenError):
            verifier.verify(_token(sub=None))

    def test_garbage_token(self, verifier):
        with pytest.raises(InvalidTokenError):
            verifier.verify("not-a-jwt")

    def test_unconfigured_secret_rejects(self):
        with pytest.raises(InvalidTokenError):
            TokenVerifier(secret="").verify(_token())
