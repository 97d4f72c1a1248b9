"""Unit tests for JWT encode/decode, invalid signature, expiration."""

from datetime import datetime, timezone, timedelta
from unittest.mock import patch

import pytest
from jose import JWTError, jwt

from app.core.auth import create_access_token, decode_token, hash_password, verify_password
from app.config import settings


def test_create_and_decode_token_roundtrip():
    """Encode then decode returns the actor id and role."""
    token = create_access_token(user_id=42, role="COACH")
    assert isinstance(token, str)
    payload = decode_token(token)
    assert payload["sub"] == "42"
    assert payload["role"] == "COACH"
    assert "exp" in payload


def test_decode_invalid_signature_raises():
    """Decoding a tampered token raises JWTError."""
    token = create_access_token(user_id=1, role="ATHLETE")
    bad_token = token[:-1] + ("x" if token[-1] != "x" else "y")
    with pytest.raises(JWTError):
        decode_token(bad_token)


def test_decode_expired_token_raises():
    """Decoding an expired token raises JWTError."""
    payload = {
        "sub": "1",
        "role": "ATHLETE",
        "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    token_str = token if isinstance(token, str) else token.decode("utf-8")
    with pytest.raises(JWTError):
        decode_token(token_str)


def test_decode_wrong_key_raises():
    token = create_access_token(user_id=1, role="ATHLETE")
    with patch.object(settings, "secret_key", "other-secret"):
        with pytest.raises(JWTError):
            decode_token(token)


def test_password_hash_verifies():
    h = hash_password("password123")
    assert verify_password("password123", h)
    assert not verify_password("wrong", h)
