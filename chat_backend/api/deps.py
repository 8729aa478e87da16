"""
FastAPI dependency providers.

This module wires together infrastructure and application layers via FastAPI `Depends`.
It contains factories/providers for:
- Database session (SQLAlchemy AsyncSession)
- Redis client
- JWT-based current user extraction
- Event publisher (lifespan-managed, read from `app.state`)
- Repositories and services

Guidelines:
- Dependency functions should be lightweight and composable.
- Avoid doing heavy work at import time.
- Keep HTTP concerns (status codes/messages) in routers, not here.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated, Any, TypeAlias

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from chat_backend.core.config import settings
from chat_backend.core.security import decode_user_id, security
from chat_backend.db.session import get_session
from chat_backend.events.publisher import Publisher, RabbitPublisher
from chat_backend.repositories.messages import MessagesRepository
from chat_backend.repositories.rooms import RoomsRepository
from chat_backend.repositories.users import UsersRepository
from chat_backend.services.auth import AuthService
from chat_backend.services.messages import MessagesService
from chat_backend.services.rooms import RoomsService
from chat_backend.services.translation import TranslationService


async def get_redis() -> AsyncGenerator[Redis, None]:
    """
    Provide a Redis client scoped to the request lifetime.

    Notes:
        - Uses `decode_responses=True`, so Redis returns strings.
        - Closes the client after request completion.
    """
    redis: Redis = Redis.from_url(
        settings.redis_dsn,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        yield redis
    finally:
        await redis.aclose()


def get_publisher(request: Request) -> Publisher:
    """
    Provide the process-wide event publisher.

    Notes:
        The publisher owns one broker channel opened in the application
        lifespan. Before the lifespan ran (or without a broker) a
        disconnected publisher is returned, which logs and drops events.
    """
    publisher: Publisher | None = getattr(request.app.state, "publisher", None)
    if publisher is None:
        return RabbitPublisher.disconnected()
    return publisher


def get_translation_service() -> TranslationService:
    return TranslationService(
        settings.translation_api_url, timeout=settings.translation_timeout_seconds
    )


async def get_current_user_id(
    token: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> int:
    """
    Extract current user id from the Authorization header (JWT bearer token).

    Raises:
        HTTPException: 401 if the token is invalid or expired.
    """
    try:
        if token is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return decode_user_id(token.credentials)
    except ValueError as err:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials") from err


SessionDep = Annotated[AsyncSession, Depends(get_session)]
RedisDep: TypeAlias = Annotated[Redis, Depends(get_redis)]
PublisherDep = Annotated[Publisher, Depends(get_publisher)]


def get_users_repo(session: SessionDep) -> UsersRepository:
    return UsersRepository(session=session)


def get_rooms_repo(session: SessionDep, redis: RedisDep) -> RoomsRepository:  # type: ignore
    return RoomsRepository(session=session, redis=redis)


def get_messages_repo(session: SessionDep) -> MessagesRepository:
    return MessagesRepository(session=session)


UsersRepoDep = Annotated[UsersRepository, Depends(get_users_repo)]
RoomsRepoDep = Annotated[RoomsRepository, Depends(get_rooms_repo)]


def get_auth_service(users_repo: UsersRepoDep, publisher: PublisherDep) -> AuthService:
    """
    Build AuthService.

    Args:
        users_repo: UsersRepository dependency.
        publisher: Publisher dependency.
    """
    return AuthService(users_repo=users_repo, publisher=publisher)


def get_rooms_service(
    rooms_repo: RoomsRepoDep, users_repo: UsersRepoDep, publisher: PublisherDep
) -> RoomsService:
    return RoomsService(rooms_repo=rooms_repo, users_repo=users_repo, publisher=publisher)


def get_messages_service(
    messages_repo: Annotated[MessagesRepository, Depends(get_messages_repo)],
    rooms_repo: RoomsRepoDep,
    users_repo: UsersRepoDep,
    publisher: PublisherDep,
) -> MessagesService:
    return MessagesService(
        messages_repo=messages_repo,
        rooms_repo=rooms_repo,
        users_repo=users_repo,
        publisher=publisher,
    )


# ---- Public dependency aliases (use these in routers) ----

AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
RoomsServiceDep = Annotated[RoomsService, Depends(get_rooms_service)]
MessagesServiceDep = Annotated[MessagesService, Depends(get_messages_service)]
TranslationServiceDep = Annotated[TranslationService, Depends(get_translation_service)]
UserIdDep = Annotated[int, Depends(get_current_user_id)]
