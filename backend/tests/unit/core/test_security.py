"""
Unit Tests for Security Module
Tests for: password hashing, JWT tokens, verification suffixes
"""
import pytest
from datetime import datetime, timedelta
from jose import jwt
from types import SimpleNamespace

from traincrm.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    create_token_pair,
    decode_token,
    generate_verification_suffix,
)
from traincrm.core.config import settings
from traincrm.core.exceptions import AuthenticationError
from traincrm.core.roles import UserRole


class TestPasswordHashing:
    """Test password hashing functions"""

    def test_hash_password_returns_different_value(self):
        password = "testpassword123"
        hashed = get_password_hash(password)

        assert hashed != password
        assert len(hashed) > 0

    def test_hash_password_different_each_time(self):
        password = "testpassword123"

        # Bcrypt generates different salts
        assert get_password_hash(password) != get_password_hash(password)

    def test_verify_password_correct(self):
        hashed = get_password_hash("testpassword123")

        assert verify_password("testpassword123", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = get_password_hash("testpassword123")

        assert verify_password("wrongpassword", hashed) is False

    def test_hash_long_password_truncated(self):
        """Bcrypt only looks at the first 72 bytes"""
        long_password = "a" * 100
        hashed = get_password_hash(long_password)

        assert verify_password(long_password, hashed) is True
        assert verify_password("a" * 72, hashed) is True

    def test_hash_unicode_password(self):
        password = "sécurité-ferroviaire-ü"
        hashed = get_password_hash(password)

        assert verify_password(password, hashed) is True

    def test_hash_password_with_whitespace(self):
        password = "  password with spaces  "
        hashed = get_password_hash(password)

        assert verify_password(password, hashed) is True
        assert verify_password(password.strip(), hashed) is False


class TestAccessToken:
    """Test access token functions"""

    def test_create_access_token_with_expiry(self):
        token = create_access_token({"sub": "user123"}, expires_delta=timedelta(hours=1))

        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        remaining = (datetime.utcfromtimestamp(payload["exp"]) - datetime.utcnow()).total_seconds()

        assert 3500 < remaining < 3700

    def test_access_token_has_type(self):
        token = create_access_token({"sub": "user123"})

        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        assert payload["type"] == "access"

    def test_access_token_includes_role(self):
        token = create_access_token({"sub": "user123", "email": "test@example.com", "role": "AP"})

        payload = decode_token(token)
        assert payload["sub"] == "user123"
        assert payload["email"] == "test@example.com"
        assert payload["role"] == "AP"


class TestRefreshToken:
    """Test refresh token functions"""

    def test_refresh_token_has_type(self):
        token = create_refresh_token({"sub": "user123"})

        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        assert payload["type"] == "refresh"

    def test_refresh_token_long_expiry(self):
        access_payload = decode_token(create_access_token({"sub": "user123"}))
        refresh_payload = decode_token(create_refresh_token({"sub": "user123"}))

        assert refresh_payload["exp"] > access_payload["exp"]


class TestDecodeToken:
    """Test token decoding"""

    def test_decode_invalid_token(self):
        with pytest.raises(AuthenticationError) as exc_info:
            decode_token("invalid_token_string")

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Could not validate credentials"

    def test_decode_expired_token(self):
        expired_token = jwt.encode(
            {"sub": "user123", "exp": datetime.utcnow() - timedelta(hours=1), "type": "access"},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM
        )

        with pytest.raises(AuthenticationError) as exc_info:
            decode_token(expired_token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Token has expired"

    def test_decode_token_wrong_secret(self):
        token = jwt.encode(
            {"sub": "user123", "exp": datetime.utcnow() + timedelta(hours=1)},
            "wrong_secret_key",
            algorithm=settings.JWT_ALGORITHM
        )

        with pytest.raises(AuthenticationError) as exc_info:
            decode_token(token)

        assert exc_info.value.status_code == 401

    def test_decode_rejects_wrong_token_type(self):
        refresh = create_refresh_token({"sub": "user123"})

        assert decode_token(refresh, "refresh")["sub"] == "user123"
        with pytest.raises(AuthenticationError) as exc_info:
            decode_token(refresh, "access")

        assert exc_info.value.code == "AUTH_FAILED"


class TestTokenPair:

    def test_pair_shares_claims(self):
        user = SimpleNamespace(id="7f1c2f0e-2a53-4b8e-9d8e-0c3b8a9a1d11", email="ap@example.com", role=UserRole.AP)

        pair = create_token_pair(user)
        access = decode_token(pair["access_token"], "access")
        refresh = decode_token(pair["refresh_token"], "refresh")

        assert pair["token_type"] == "bearer"
        assert access["sub"] == refresh["sub"] == user.id
        assert access["role"] == "AP"


class TestVerificationSuffix:

    def test_suffix_format(self):
        suffix = generate_verification_suffix()

        assert len(suffix) == 8
        assert suffix == suffix.upper()
        int(suffix, 16)

    def test_suffix_length(self):
        assert len(generate_verification_suffix(12)) == 12

    def test_suffixes_differ(self):
        assert generate_verification_suffix() != generate_verification_suffix()

