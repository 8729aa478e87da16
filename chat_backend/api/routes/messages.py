"""Message endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from chat_backend.api.deps import MessagesServiceDep, UserIdDep
from chat_backend.schemas.messages import MessageCreate, MessageRead, MessagesList

router = APIRouter(prefix="/api/rooms", tags=["messages"])


@router.get("/{room_id}/messages", response_model=MessagesList)
async def list_messages(
    room_id: int,
    service: MessagesServiceDep,
    _: UserIdDep,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> MessagesList:
    try:
        return MessagesList(messages=await service.list_messages(room_id, limit, offset))
    except LookupError as err:
        raise HTTPException(status_code=404, detail="Room not found") from err


@router.post("/{room_id}/messages", response_model=MessageRead, status_code=201)
async def send_message(
    room_id: int, payload: MessageCreate, service: MessagesServiceDep, user_id: UserIdDep
) -> MessageRead:
    """Post a message as the current user; emits `message.created`."""
    try:
        return await service.send_message(room_id, user_id, payload)
    except LookupError as err:
        detail = "Room not found" if str(err) == "room_not_found" else "User not found"
        raise HTTPException(status_code=404, detail=detail) from err
    except PermissionError as err:
        raise HTTPException(status_code=403, detail="User is not a member of the room") from err
