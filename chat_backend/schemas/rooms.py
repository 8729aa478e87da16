"""Schemas for room and membership endpoints."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class RoomCreate(BaseModel):
    """Input schema for creating a room."""
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    is_private: bool = False


class RoomRead(BaseModel):
    """Output schema for a room."""
    id: int
    name: str
    description: str | None = None
    created_by: int | None = None
    created_at: datetime
    is_private: bool


class RoomsList(BaseModel):
    rooms: list[RoomRead]


class MemberAdd(BaseModel):
    """Input schema for adding a user to a room."""
    user_id: int
    role: str = Field(default="member", min_length=1, max_length=20)


class MemberRead(BaseModel):
    """Output schema for one room member."""
    user_id: int
    username: str
    email: str
    role: str
    joined_at: datetime


class MembersList(BaseModel):
    members: list[MemberRead]
