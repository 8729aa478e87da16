from __future__ import annotations

from chat_backend.events import codec
from chat_backend.events.publisher import Publisher
from chat_backend.repositories.rooms import RoomsRepository
from chat_backend.repositories.users import UsersRepository
from chat_backend.schemas.rooms import MemberAdd, MemberRead, RoomCreate, RoomRead


class RoomsService:
    """
    Rooms application service.

    Responsibilities:
    - Room creation (the creator becomes the room owner).
    - Membership changes, publishing `user.joined_room` after commit.

    Non-responsibilities:
    - SQL queries or cache logic (handled by repositories).
    - HTTP concerns (status codes, FastAPI exceptions).
    """

    def __init__(
        self,
        rooms_repo: RoomsRepository,
        users_repo: UsersRepository,
        publisher: Publisher,
    ) -> None:
        self._rooms = rooms_repo
        self._users = users_repo
        self._publisher = publisher

    async def create_room(self, user_id: int, payload: RoomCreate) -> RoomRead:
        return await self._rooms.create(
            name=payload.name,
            description=payload.description,
            created_by=user_id,
            is_private=payload.is_private,
        )

    async def get_room(self, room_id: int) -> RoomRead:
        """
        Raises:
            LookupError: If the room does not exist.
        """
        room = await self._rooms.get(room_id)
        if room is None:
            raise LookupError("room_not_found")
        return room

    async def list_rooms(self) -> list[RoomRead]:
        return await self._rooms.list_all()

    async def list_user_rooms(self, user_id: int) -> list[RoomRead]:
        return await self._rooms.list_for_user(user_id)

    async def list_members(self, room_id: int) -> list[MemberRead]:
        await self.get_room(room_id)
        return await self._rooms.list_members(room_id)

    async def add_member(self, room_id: int, payload: MemberAdd) -> MemberAdd:
        """
        Add a user to a room and publish `user.joined_room`.

        Raises:
            LookupError: "room_not_found" / "user_not_found".
            ValueError: "already_member".
        """
        room = await self.get_room(room_id)
        user = await self._users.get_by_id(payload.user_id)
        if user is None:
            raise LookupError("user_not_found")
        if await self._rooms.is_member(room_id, user.id):
            raise ValueError("already_member")

        # Capture before commit; a failed insert rolls back and expires `user`.
        username, email = user.username, user.email
        if not await self._rooms.add_member(room_id, payload.user_id, payload.role):
            raise ValueError("already_member")

        await self._publisher.publish(
            codec.EventType.USER_JOINED_ROOM.value,
            codec.user_joined_room(
                room_id=room.id,
                user_id=payload.user_id,
                room_name=room.name,
                username=username,
                user_email=email,
                role=payload.role,
            ),
        )
        return payload
