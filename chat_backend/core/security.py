"""
Security helpers: password hashing and JWT access tokens.

Passwords are hashed with argon2. `pbkdf2_sha256` hashes are still accepted
for verification (and reported by `needs_rehash`) so older accounts can log in
and be upgraded on their next successful login.

Access tokens carry the user id as `sub` and the username as an extra claim.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi.security import HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from chat_backend.core.config import settings

security = HTTPBearer(auto_error=True)

pwd_context = CryptContext(
    schemes=["argon2", "pbkdf2_sha256"],
    deprecated="auto",
)


class MissingSecretError(RuntimeError):
    """JWT_SECRET_KEY is not configured."""


def jwt_secret() -> str:
    """
    Return the JWT signing key.

    Raises:
        MissingSecretError: JWT_SECRET_KEY is unset or empty.
    """
    if not settings.jwt_secret_key:
        raise MissingSecretError("JWT_SECRET_KEY must be set for the API server")
    return settings.jwt_secret_key


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plain password against a stored hash; unknown/malformed hashes never match."""
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def needs_rehash(password_hash: str) -> bool:
    """True when the hash was produced by a deprecated scheme."""
    try:
        return pwd_context.needs_update(password_hash)
    except ValueError:
        return False


def create_access_token(
    subject: str,
    expires_minutes: int | None = None,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """
    Create a signed JWT access token.

    Args:
        subject: Token subject, the user id as a string.
        expires_minutes: Lifetime override; defaults to JWT_ACCESS_TOKEN_EXPIRE_MINUTES.
        extra_claims: Additional public claims (e.g. `username`).
    """
    now = datetime.now(tz=UTC)
    expire = now + timedelta(minutes=expires_minutes or settings.jwt_access_token_expire_minutes)
    to_encode: dict[str, Any] = {**(extra_claims or {}), "sub": subject, "iat": now, "exp": expire}
    return jwt.encode(to_encode, jwt_secret(), algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> str:
    """
    Decode a JWT and return its subject.

    Raises:
        ValueError: Bad signature, expired token or missing subject.
    """
    try:
        payload = jwt.decode(token, jwt_secret(), algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise ValueError("Invalid token payload")
    return subject


def decode_user_id(token: str) -> int:
    """Decode a JWT whose subject is a numeric user id."""
    subject = decode_token(token)
    if not subject.isdigit():
        raise ValueError("Token subject is not a user id")
    return int(subject)
