"""Messages repository: persistence for room messages."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chat_backend.db.models import Message
from chat_backend.schemas.messages import MessageRead


class MessagesRepository:
    """
    Data access layer for Message entities.

    Args:
        session: SQLAlchemy async session.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self, room_id: int, user_id: int, content: str, message_type: str = "text"
    ) -> MessageRead:
        message = Message(
            room_id=room_id,
            user_id=user_id,
            content=content,
            message_type=message_type,
        )
        self._session.add(message)
        await self._session.commit()
        await self._session.refresh(message)
        return MessageRead.model_validate(message, from_attributes=True)

    async def get(self, message_id: int) -> MessageRead | None:
        stmt = select(Message).where(Message.id == message_id, Message.is_deleted.is_(False))
        message = (await self._session.execute(stmt)).scalar_one_or_none()
        if message is None:
            return None
        return MessageRead.model_validate(message, from_attributes=True)

    async def list_for_room(self, room_id: int, limit: int = 50, offset: int = 0) -> list[MessageRead]:
        """
        List non-deleted messages of a room.

        Returns:
            List of MessageRead DTOs (newest first).
        """
        stmt = (
            select(Message)
            .where(Message.room_id == room_id, Message.is_deleted.is_(False))
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
            .offset(offset)
        )
        messages = (await self._session.execute(stmt)).scalars().all()
        return [MessageRead.model_validate(m, from_attributes=True) for m in messages]
