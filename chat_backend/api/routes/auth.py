"""Registration, login and user lookup endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi_limiter.depends import RateLimiter

from chat_backend.api.deps import AuthServiceDep, UserIdDep
from chat_backend.schemas.auth import LoginRequest, Token, UserCreate, UserRead

router = APIRouter(prefix="/api", tags=["auth"])

_DUPLICATE_DETAIL = {
    "username_exists": "Username already exists",
    "email_exists": "Email already registered",
}


@router.post(
    "/register",
    response_model=UserRead,
    status_code=201,
    dependencies=[
        Depends(RateLimiter(times=5, seconds=60)),
        Depends(RateLimiter(times=100, seconds=3600)),
    ],
)
async def register_user(payload: UserCreate, service: AuthServiceDep) -> UserRead:
    """Register a user; emits `user.registered`."""
    try:
        return await service.register(payload)
    except ValueError as err:
        raise HTTPException(status_code=409, detail=_DUPLICATE_DETAIL.get(str(err), str(err))) from err


@router.post(
    "/login",
    response_model=Token,
    dependencies=[
        Depends(RateLimiter(times=5, seconds=60)),
        Depends(RateLimiter(times=100, seconds=3600)),
    ],
)
async def login_for_access_token(payload: LoginRequest, service: AuthServiceDep) -> Token:
    """Login endpoint that returns a JWT token."""
    try:
        return await service.login(payload)
    except PermissionError as err:
        raise HTTPException(status_code=401, detail="Incorrect username or password") from err


@router.get("/users", response_model=list[UserRead])
async def list_users(service: AuthServiceDep, _: UserIdDep) -> list[UserRead]:
    return await service.list_users()


@router.get("/users/{user_id}", response_model=UserRead)
async def get_user(user_id: int, service: AuthServiceDep, _: UserIdDep) -> UserRead:
    try:
        return await service.get_user(user_id)
    except LookupError as err:
        raise HTTPException(status_code=404, detail="User not found") from err
