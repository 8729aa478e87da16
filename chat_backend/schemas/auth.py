"""Schemas for registration, login and user endpoints."""
from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")


class UserCreate(BaseModel):
    """Input schema for user registration."""
    username: str = Field(min_length=3, max_length=20)
    email: EmailStr
    password: str = Field(min_length=8)

    @field_validator("username")
    @classmethod
    def _username_charset(cls, value: str) -> str:
        if not USERNAME_RE.match(value):
            raise ValueError("username may contain only letters, digits and underscores")
        return value

    @field_validator("password")
    @classmethod
    def _password_strength(cls, value: str) -> str:
        if not any(c.isalpha() for c in value) or not any(c.isdigit() for c in value):
            raise ValueError("password must contain both letters and numbers")
        return value


class LoginRequest(BaseModel):
    """Input schema for login."""
    username: str
    password: str


class Token(BaseModel):
    """Output schema for JWT token response."""
    access_token: str
    token_type: str = "bearer"


class UserRead(BaseModel):
    """Output schema for user info."""
    id: int
    username: str
    email: EmailStr
    created_at: datetime | None = None
    last_login: datetime | None = None
    is_active: bool = True
