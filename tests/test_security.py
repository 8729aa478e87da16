"""Tests for security helpers."""

from __future__ import annotations

import pytest
from faker import Faker
from jose import jwt
from passlib.hash import pbkdf2_sha256

from chat_backend.core.config import settings
from chat_backend.core.security import (
    MissingSecretError,
    create_access_token,
    decode_token,
    decode_user_id,
    hash_password,
    needs_rehash,
    verify_password,
)


def test_password_hash_and_verify(faker: Faker) -> None:
    """Password hashing must verify correctly and fail for different password."""
    password = f"Secret{faker.random_int(min=10_000, max=99_999)}"

    h = hash_password(password)
    assert h != password
    assert verify_password(password, h) is True
    assert verify_password(password + "x", h) is False


def test_verify_malformed_hash() -> None:
    assert verify_password("Secret123", "not-a-hash") is False


def test_jwt_subject_is_user_id() -> None:
    token = create_access_token("42", expires_minutes=5)
    assert decode_token(token) == "42"


def test_expired_token_rejected() -> None:
    token = create_access_token("42", expires_minutes=-1)
    with pytest.raises(ValueError):
        decode_token(token)


@pytest.mark.parametrize("bad", ["", "not-a-jwt", "a.b.c"])
def test_decode_token_invalid(bad: str) -> None:
    """Invalid tokens must raise ValueError."""
    with pytest.raises(ValueError):
        decode_token(bad)


def test_legacy_pbkdf2_hash_verifies_and_needs_rehash() -> None:
    legacy = pbkdf2_sha256.hash("Secret123")

    assert verify_password("Secret123", legacy) is True
    assert needs_rehash(legacy) is True
    assert needs_rehash(hash_password("Secret123")) is False


def test_token_carries_extra_claims() -> None:
    token = create_access_token("7", extra_claims={"username": "alice"})

    claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    assert claims["username"] == "alice"
    assert decode_user_id(token) == 7


def test_non_numeric_subject_is_not_a_user_id() -> None:
    with pytest.raises(ValueError):
        decode_user_id(create_access_token("alice"))


@pytest.mark.parametrize("secret", [None, ""])
def test_tokens_require_secret(monkeypatch: pytest.MonkeyPatch, secret: str | None) -> None:
    token = create_access_token("1")
    monkeypatch.setattr(settings, "jwt_secret_key", secret)

    with pytest.raises(MissingSecretError):
        create_access_token("1")
    with pytest.raises(MissingSecretError):
        decode_token(token)
