"""Tests for Redis caching helpers."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from faker import Faker

from chat_backend.core.config import get_settings
from chat_backend.schemas.rooms import RoomRead
from chat_backend.services.cache import cache_key, get_cached, set_cached
from tests.conftest import FakeRedis

settings = get_settings()


@pytest.fixture()
def sample_room(faker: Faker) -> RoomRead:
    """Create a sample room for caching tests."""
    return RoomRead(
        id=faker.random_int(min=1, max=10_000),
        name=faker.word(),
        description=faker.sentence(),
        created_by=faker.random_int(min=1, max=10_000),
        created_at=datetime.now(tz=UTC),
        is_private=False,
    )


async def test_cache_roundtrip(fake_redis: FakeRedis, sample_room: RoomRead) -> None:
    key = cache_key("room", sample_room.id)

    assert key == f"room:{sample_room.id}"
    assert await get_cached(fake_redis, key, RoomRead) is None  # type: ignore

    await set_cached(
        redis=fake_redis,  # type: ignore
        key=key,
        value=sample_room,
        ttl_seconds=settings.cache_ttl_seconds,
    )

    cached = await get_cached(fake_redis, key, RoomRead)  # type: ignore
    assert cached == sample_room
    assert fake_redis.setex_calls == 1

    renamed = sample_room.model_copy(update={"name": "renamed"})
    await set_cached(fake_redis, key, renamed, settings.cache_ttl_seconds)  # type: ignore
    assert await get_cached(fake_redis, key, RoomRead) == renamed  # type: ignore
