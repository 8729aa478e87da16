from __future__ import annotations

from chat_backend.events import codec
from chat_backend.events.publisher import Publisher
from chat_backend.repositories.messages import MessagesRepository
from chat_backend.repositories.rooms import RoomsRepository
from chat_backend.repositories.users import UsersRepository
from chat_backend.schemas.messages import MessageCreate, MessageRead

MAX_PAGE_SIZE = 100


class MessagesService:
    """
    Messages application service.

    Only room members may post. Every stored message is announced with a
    `message.created` event carrying the sender and room details, so the
    notification consumer never has to read the database.
    """

    def __init__(
        self,
        messages_repo: MessagesRepository,
        rooms_repo: RoomsRepository,
        users_repo: UsersRepository,
        publisher: Publisher,
    ) -> None:
        self._messages = messages_repo
        self._rooms = rooms_repo
        self._users = users_repo
        self._publisher = publisher

    async def send_message(self, room_id: int, user_id: int, payload: MessageCreate) -> MessageRead:
        """
        Store a message and publish `message.created`.

        Raises:
            LookupError: "room_not_found" / "user_not_found".
            PermissionError: The user is not a member of the room.
        """
        room = await self._rooms.get(room_id)
        if room is None:
            raise LookupError("room_not_found")
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise LookupError("user_not_found")
        if not await self._rooms.is_member(room_id, user_id):
            raise PermissionError("not_a_member")

        message = await self._messages.create(
            room_id=room_id,
            user_id=user_id,
            content=payload.content,
            message_type=payload.message_type,
        )

        await self._publisher.publish(
            codec.EventType.MESSAGE_CREATED.value,
            codec.message_created(
                message_id=message.id,
                room_id=room.id,
                user_id=user.id,
                sender_username=user.username,
                sender_email=user.email,
                room_name=room.name,
                content=message.content,
                message_type=message.message_type,
                timestamp=message.created_at,
            ),
        )
        return message

    async def list_messages(self, room_id: int, limit: int = 50, offset: int = 0) -> list[MessageRead]:
        """
        Raises:
            LookupError: If the room does not exist.
        """
        if await self._rooms.get(room_id) is None:
            raise LookupError("room_not_found")
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        return await self._messages.list_for_room(room_id, limit=limit, offset=max(0, offset))
