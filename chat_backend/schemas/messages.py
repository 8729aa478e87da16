"""Schemas for message endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

MessageType = Literal["text", "image", "file"]


class MessageCreate(BaseModel):
    """Input schema for posting a message."""
    content: str = Field(min_length=1, max_length=1000)
    message_type: MessageType = "text"


class MessageRead(BaseModel):
    """Output schema for a message."""
    id: int
    room_id: int
    user_id: int | None
    content: str
    message_type: str
    created_at: datetime
    edited_at: datetime | None = None
    is_deleted: bool = False


class MessagesList(BaseModel):
    messages: list[MessageRead]
