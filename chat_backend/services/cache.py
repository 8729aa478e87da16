"""
Redis-based generic cache helpers.

Low-level cache utilities intended for repositories only.

Responsibilities:
- Build stable Redis keys.
- Serialize / deserialize Pydantic DTOs to/from JSON.
- Provide minimal cache primitives: get/set.

Non-responsibilities:
- Business rules (membership, permissions).
- Database access.
- HTTP concerns.

Usage:
    This module MUST be used only from repositories (e.g. RoomsRepository),
    never directly from API routes or business services.
"""

from __future__ import annotations

from typing import TypeVar

from pydantic import BaseModel
from redis.asyncio import Redis

T = TypeVar("T", bound=BaseModel)


def cache_key(prefix: str, entity_id: int | str) -> str:
    """Build a Redis key in the format `{prefix}:{id}`, e.g. `room:42`."""
    return f"{prefix}:{entity_id}"


async def get_cached(
    redis: Redis,
    key: str,
    model: type[T],
) -> T | None:
    """
    Retrieve a cached model from Redis by key.

    Returns:
        Parsed Pydantic model instance if present in cache, otherwise None.

    Raises:
        pydantic.ValidationError: If cached JSON is invalid for the model.
    """
    raw: str | None = await redis.get(key)
    if raw is None:
        return None
    return model.model_validate_json(raw)


async def set_cached(
    redis: Redis,
    key: str,
    value: T,
    ttl_seconds: int,
) -> None:
    """Store a Pydantic model in Redis with TTL, overwriting any previous entry."""
    await redis.setex(
        name=key,
        time=ttl_seconds,
        value=value.model_dump_json(),
    )
