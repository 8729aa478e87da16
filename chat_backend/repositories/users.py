from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chat_backend.db.models import User

"""
Users repository.

A repository encapsulates persistence concerns (SQLAlchemy/DB access).
It provides a small, testable API for common user operations, keeping
database queries out of API handlers and business services.

This repository is intentionally free of HTTP concerns (no FastAPI types)
and free of crypto/auth concerns (password hashing is done elsewhere).
"""


class UsersRepository:
    """
    Data access layer for User entities.

    Args:
        session: SQLAlchemy async session scoped to the current request/unit-of-work.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_username(self, username: str) -> User | None:
        stmt = select(User).where(User.username == username)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_by_id(self, user_id: int) -> User | None:
        """
        Fetch a user by database id.

        Args:
            user_id: User primary key.

        Returns:
            User instance or None if not found.
        """
        stmt = select(User).where(User.id == user_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_all(self) -> list[User]:
        stmt = select(User).order_by(User.id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def create(self, username: str, email: str, password_hash: str) -> User:
        """
        Create a new user.

        Notes:
            - Expects an already-hashed password.
            - Commits within the method (simple unit-of-work model).

        Returns:
            The created User model with refreshed fields (e.g., id).
        """
        user = User(username=username, email=email, password_hash=password_hash)
        self._session.add(user)
        await self._session.commit()
        await self._session.refresh(user)
        return user

    async def touch_last_login(self, user: User, password_hash: str | None = None) -> None:
        """Record a successful login, optionally replacing the stored password hash."""
        user.last_login = datetime.now(tz=UTC)
        if password_hash is not None:
            user.password_hash = password_hash
        await self._session.commit()
