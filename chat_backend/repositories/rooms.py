"""
Rooms repository (ORM + cache).

This repository is the single place that knows about:
- SQLAlchemy persistence for rooms and room memberships.
- Redis cache for single-room reads.

It implements cache-aside for `get`:
- Read: try Redis first; on miss load from DB; then populate Redis.
- Write: write to DB; then overwrite Redis.

Lists and membership checks always go to the database.
"""

from __future__ import annotations

from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from chat_backend.core.config import get_settings
from chat_backend.db.models import Room, RoomMember, User
from chat_backend.schemas.rooms import MemberRead, RoomRead
from chat_backend.services.cache import cache_key, get_cached, set_cached

settings = get_settings()


class RoomsRepository:
    """
    Data access layer for Room and RoomMember entities, with optional Redis caching.

    Args:
        session: SQLAlchemy async session.
        redis: Redis client. If None, repository works without caching.
    """

    def __init__(self, session: AsyncSession, redis: Redis | None = None) -> None:
        self._session = session
        self._redis = redis

    @staticmethod
    def _room_cache_key(room_id: int) -> str:
        return cache_key("room", room_id)

    async def _cache(self, room: RoomRead) -> None:
        if self._redis is not None:
            await set_cached(
                redis=self._redis,
                key=self._room_cache_key(room.id),
                value=room,
                ttl_seconds=settings.cache_ttl_seconds,
            )

    async def create(
        self,
        name: str,
        description: str,
        created_by: int,
        is_private: bool = False,
        owner_role: str = "owner",
    ) -> RoomRead:
        """
        Create a room and make its creator a member in one commit.

        Returns:
            RoomRead DTO of the created room.
        """
        room = Room(
            name=name,
            description=description,
            created_by=created_by,
            is_private=is_private,
        )
        self._session.add(room)
        await self._session.flush()
        self._session.add(RoomMember(room_id=room.id, user_id=created_by, role=owner_role))
        await self._session.commit()
        await self._session.refresh(room)

        read = RoomRead.model_validate(room, from_attributes=True)
        await self._cache(read)
        return read

    async def get(self, room_id: int) -> RoomRead | None:
        """
        Get a room by id (cache-aside).

        Returns:
            RoomRead DTO or None if the room does not exist.
        """
        key = self._room_cache_key(room_id)

        # 1) Cache
        if self._redis is not None:
            cached = await get_cached(self._redis, key, RoomRead)
            if cached is not None:
                return cached

        # 2) DB
        stmt = select(Room).where(Room.id == room_id)
        room = (await self._session.execute(stmt)).scalar_one_or_none()
        if room is None:
            return None

        read = RoomRead.model_validate(room, from_attributes=True)

        # 3) Populate cache
        await self._cache(read)
        return read

    async def list_all(self) -> list[RoomRead]:
        stmt = select(Room).order_by(Room.id)
        rooms = (await self._session.execute(stmt)).scalars().all()
        return [RoomRead.model_validate(r, from_attributes=True) for r in rooms]

    async def list_for_user(self, user_id: int) -> list[RoomRead]:
        """List rooms the user is a member of."""
        stmt = (
            select(Room)
            .join(RoomMember, RoomMember.room_id == Room.id)
            .where(RoomMember.user_id == user_id)
            .order_by(Room.id)
        )
        rooms = (await self._session.execute(stmt)).scalars().all()
        return [RoomRead.model_validate(r, from_attributes=True) for r in rooms]

    async def is_member(self, room_id: int, user_id: int) -> bool:
        stmt = select(RoomMember.id).where(
            RoomMember.room_id == room_id, RoomMember.user_id == user_id
        )
        return (await self._session.execute(stmt)).first() is not None

    async def add_member(self, room_id: int, user_id: int, role: str = "member") -> bool:
        """
        Add a user to a room.

        Returns:
            False if the membership already exists (unique constraint), else True.
        """
        self._session.add(RoomMember(room_id=room_id, user_id=user_id, role=role))
        try:
            await self._session.commit()
        except IntegrityError:
            await self._session.rollback()
            return False
        return True

    async def list_members(self, room_id: int) -> list[MemberRead]:
        stmt = (
            select(RoomMember, User)
            .join(User, User.id == RoomMember.user_id)
            .where(RoomMember.room_id == room_id)
            .order_by(RoomMember.joined_at, RoomMember.id)
        )
        rows = (await self._session.execute(stmt)).all()
        return [
            MemberRead(
                user_id=user.id,
                username=user.username,
                email=user.email,
                role=member.role,
                joined_at=member.joined_at,
            )
            for member, user in rows
        ]
