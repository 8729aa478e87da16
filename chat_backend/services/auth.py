from __future__ import annotations

from chat_backend.core.security import (
    create_access_token,
    hash_password,
    needs_rehash,
    verify_password,
)
from chat_backend.events import codec
from chat_backend.events.publisher import Publisher
from chat_backend.repositories.users import UsersRepository
from chat_backend.schemas.auth import LoginRequest, Token, UserCreate, UserRead

"""
Authentication service.

Contains the application/business logic for:
- user registration (and the `user.registered` event)
- user login and JWT issuance
- user lookups

This layer must NOT:
- talk HTTP (status codes, FastAPI exceptions)
- execute SQL queries directly (use repositories)
"""


class AuthService:
    """
    Authentication use-cases.

    Args:
        users_repo: Repository used for user persistence and lookups.
        publisher: Messaging publisher used to emit domain events.
    """

    def __init__(self, users_repo: UsersRepository, publisher: Publisher) -> None:
        self._users_repo = users_repo
        self._publisher = publisher

    async def register(self, payload: UserCreate) -> UserRead:
        """
        Register a new user and publish `user.registered`.

        Business flow:
        1. Reject duplicate username/email.
        2. Persist the user (commit).
        3. Publish the event; a failed publish does not fail registration.

        Raises:
            ValueError: "username_exists" / "email_exists".
        """
        if await self._users_repo.get_by_username(payload.username) is not None:
            raise ValueError("username_exists")
        if await self._users_repo.get_by_email(payload.email) is not None:
            raise ValueError("email_exists")

        user = await self._users_repo.create(
            username=payload.username,
            email=payload.email,
            password_hash=hash_password(payload.password),
        )

        await self._publisher.publish(
            codec.EventType.USER_REGISTERED.value,
            codec.user_registered(
                user_id=user.id,
                username=user.username,
                email=user.email,
                timestamp=user.created_at,
            ),
        )
        return UserRead.model_validate(user, from_attributes=True)

    async def login(self, payload: LoginRequest) -> Token:
        """
        Authenticate a user and issue a JWT access token.

        Raises:
            PermissionError: "bad_credentials" if username/password is invalid
                or the account is deactivated.
        """
        user = await self._users_repo.get_by_username(payload.username)
        if (
            user is None
            or not user.is_active
            or not verify_password(payload.password, user.password_hash)
        ):
            raise PermissionError("bad_credentials")

        # Upgrade hashes made with a deprecated scheme.
        new_hash = hash_password(payload.password) if needs_rehash(user.password_hash) else None
        await self._users_repo.touch_last_login(user, password_hash=new_hash)
        token = create_access_token(
            subject=str(user.id), extra_claims={"username": user.username}
        )
        return Token(access_token=token)

    async def get_user(self, user_id: int) -> UserRead:
        """
        Raises:
            LookupError: If the user does not exist.
        """
        user = await self._users_repo.get_by_id(user_id)
        if user is None:
            raise LookupError("user_not_found")
        return UserRead.model_validate(user, from_attributes=True)

    async def list_users(self) -> list[UserRead]:
        users = await self._users_repo.list_all()
        return [UserRead.model_validate(u, from_attributes=True) for u in users]
