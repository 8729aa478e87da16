"""Room and membership endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from chat_backend.api.deps import RoomsServiceDep, UserIdDep
from chat_backend.schemas.rooms import MemberAdd, MembersList, RoomCreate, RoomRead, RoomsList

router = APIRouter(prefix="/api/rooms", tags=["rooms"])

_NOT_FOUND = {"room_not_found": "Room not found", "user_not_found": "User not found"}


@router.get("", response_model=RoomsList)
async def list_rooms(service: RoomsServiceDep, _: UserIdDep) -> RoomsList:
    return RoomsList(rooms=await service.list_rooms())


@router.post("", response_model=RoomRead, status_code=201)
async def create_room(payload: RoomCreate, service: RoomsServiceDep, user_id: UserIdDep) -> RoomRead:
    """Create a room owned by the current user."""
    return await service.create_room(user_id, payload)


@router.get("/user/{user_id}", response_model=RoomsList)
async def list_user_rooms(user_id: int, service: RoomsServiceDep, _: UserIdDep) -> RoomsList:
    return RoomsList(rooms=await service.list_user_rooms(user_id))


@router.get("/{room_id}", response_model=RoomRead)
async def get_room(room_id: int, service: RoomsServiceDep, _: UserIdDep) -> RoomRead:
    try:
        return await service.get_room(room_id)
    except LookupError as err:
        raise HTTPException(status_code=404, detail="Room not found") from err


@router.get("/{room_id}/members", response_model=MembersList)
async def list_members(room_id: int, service: RoomsServiceDep, _: UserIdDep) -> MembersList:
    try:
        return MembersList(members=await service.list_members(room_id))
    except LookupError as err:
        raise HTTPException(status_code=404, detail="Room not found") from err


@router.post("/{room_id}/members")
async def add_member(
    room_id: int, payload: MemberAdd, service: RoomsServiceDep, _: UserIdDep
) -> dict[str, Any]:
    """Add a user to a room; emits `user.joined_room`."""
    try:
        added = await service.add_member(room_id, payload)
    except LookupError as err:
        raise HTTPException(status_code=404, detail=_NOT_FOUND.get(str(err), str(err))) from err
    except ValueError as err:
        raise HTTPException(status_code=409, detail="User is already a member of the room") from err
    return {
        "message": "User added to room successfully",
        "room_id": room_id,
        "user_id": added.user_id,
        "role": added.role,
    }
