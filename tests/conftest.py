"""Pytest fixtures for the chat service.

This test suite uses an in-memory SQLite database and lightweight fakes for Redis,
the event publisher, the AMQP channel objects and the mail transport, so no
broker, Redis or SMTP server is needed.

Notes about FastAPI-Limiter:
- The production app uses `fastapi-limiter` on the register/login endpoints.
- In integration tests we override those dependencies with no-ops to avoid
  requiring a real Redis instance that supports Lua scripts.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from chat_backend.api import deps  # noqa: E402
from chat_backend.db.models import Base  # noqa: E402
from chat_backend.events.codec import Event  # noqa: E402
from chat_backend.main import app  # noqa: E402


class FakeRedis:
    """In-memory async Redis substitute with call counters.

    This fake implements a minimal subset used by the app:
    - get
    - setex
    - ping

    It also tracks call counts so tests can assert cache hits.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self.get_calls: int = 0
        self.setex_calls: int = 0

    async def get(self, key: str) -> str | None:
        self.get_calls += 1
        return self._data.get(key)

    async def setex(self, name: str, time: int, value: str) -> None:
        self.setex_calls += 1
        self._data[name] = value

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None


class FakePublisher:
    """Publisher stub for tests collecting (routing_key, event) pairs."""

    is_connected = True

    def __init__(self) -> None:
        self.published: list[tuple[str, Event]] = []

    async def publish(self, routing_key: str, event: Event) -> None:
        self.published.append((routing_key, event))

    def keys(self) -> list[str]:
        return [key for key, _ in self.published]


class FakeMailTransport:
    """Mail transport stub recording every send."""

    def __init__(self, result: bool = True, error: Exception | None = None) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self._result = result
        self._error = error

    def is_configured(self) -> bool:
        return True

    async def send_email(self, to: str, subject: str, body: str) -> bool:
        if self._error is not None:
            raise self._error
        self.sent.append((to, subject, body))
        return self._result


# ---- AMQP fakes (shape of the aio-pika objects we touch) ----


class FakeCallbacks:
    """Stand-in for aio-pika's CallbackCollection."""

    def __init__(self, sender: Any) -> None:
        self._sender = sender
        self._callbacks: list[Callable[..., Any]] = []

    def add(self, callback: Callable[..., Any]) -> None:
        self._callbacks.append(callback)

    def discard(self, callback: Callable[..., Any]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def __len__(self) -> int:
        return len(self._callbacks)

    def fire(self, exc: BaseException | None = None) -> None:
        for callback in list(self._callbacks):
            callback(self._sender, exc)


class FakeExchange:
    def __init__(self, name: str, error: Exception | None = None) -> None:
        self.name = name
        self.published: list[tuple[Any, str]] = []
        self.error = error

    async def publish(self, message: Any, routing_key: str) -> None:
        if self.error is not None:
            raise self.error
        self.published.append((message, routing_key))


class FakeQueue:
    def __init__(self, name: str) -> None:
        self.name = name
        self.bindings: set[tuple[str, str]] = set()
        self.callback: Callable[[Any], Awaitable[None]] | None = None
        self.no_ack: bool | None = None
        self.cancelled: list[str] = []

    async def bind(self, exchange: FakeExchange, routing_key: str) -> None:
        self.bindings.add((exchange.name, routing_key))

    async def consume(self, callback: Callable[[Any], Awaitable[None]], no_ack: bool = False) -> str:
        self.callback = callback
        self.no_ack = no_ack
        return "ctag-1"

    async def cancel(self, consumer_tag: str) -> None:
        self.cancelled.append(consumer_tag)

    async def deliver(self, message: FakeIncomingMessage) -> None:
        assert self.callback is not None, "consume() was not called"
        await self.callback(message)


class FakeChannel:
    def __init__(self, error: Exception | None = None) -> None:
        self.exchanges: dict[str, FakeExchange] = {}
        self.queues: dict[str, FakeQueue] = {}
        self.exchange_calls: list[tuple[str, Any, dict[str, Any]]] = []
        self.queue_calls: list[tuple[str, dict[str, Any]]] = []
        self.prefetch_count: int | None = None
        self.is_closed = False
        self.close_callbacks = FakeCallbacks(self)
        self._error = error

    async def declare_exchange(self, name: str, type: Any, **kwargs: Any) -> FakeExchange:
        if self._error is not None:
            raise self._error
        self.exchange_calls.append((name, type, kwargs))
        return self.exchanges.setdefault(name, FakeExchange(name))

    async def declare_queue(self, name: str, **kwargs: Any) -> FakeQueue:
        self.queue_calls.append((name, kwargs))
        return self.queues.setdefault(name, FakeQueue(name))

    async def set_qos(self, prefetch_count: int) -> None:
        self.prefetch_count = prefetch_count


class FakeIncomingMessage:
    def __init__(self, routing_key: str, body: bytes) -> None:
        self.routing_key = routing_key
        self.body = body
        self.acked = False

    async def ack(self) -> None:
        self.acked = True


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll `predicate` until it holds or fail after `timeout` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture()
async def session_maker() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """SQLite async session factory for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    maker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    yield maker
    await engine.dispose()


@pytest.fixture()
async def db_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Provide a transactional session."""
    async with session_maker() as session:
        yield session


@pytest.fixture()
def fake_redis() -> FakeRedis:
    """Provide fake Redis."""
    return FakeRedis()


@pytest.fixture()
def fake_publisher() -> FakePublisher:
    """Provide fake publisher."""
    return FakePublisher()


@pytest.fixture()
def fake_mail() -> FakeMailTransport:
    return FakeMailTransport()


@pytest.fixture()
def password() -> str:
    return "Secret123"


def _override_fastapi_limiter_dependencies() -> None:
    """Replace fastapi-limiter dependencies on all routes with no-ops (test-only).

    The `RateLimiter` dependency requires FastAPILimiter.init + a real Redis
    supporting Lua scripts. For tests we validate application behavior without
    exercising fastapi-limiter itself.
    """

    async def _no_limit() -> None:
        return None

    for route in getattr(app.router, "routes", []):
        dependant = getattr(route, "dependant", None)
        if dependant is None:
            continue
        for dep in dependant.dependencies:
            call = getattr(dep, "call", None)
            # fastapi-limiter dependencies are callable "RateLimiter" instances
            if call is not None and call.__class__.__name__ == "RateLimiter":
                app.dependency_overrides[call] = _no_limit


@pytest.fixture()
async def client(
    db_session: AsyncSession, fake_redis: FakeRedis, fake_publisher: FakePublisher
) -> AsyncIterator[AsyncClient]:
    """HTTP client with dependency overrides."""

    async def _get_session_override() -> AsyncIterator[AsyncSession]:
        yield db_session

    async def _get_redis_override() -> AsyncIterator[FakeRedis]:
        yield fake_redis

    def _get_publisher_override() -> FakePublisher:
        return fake_publisher

    _override_fastapi_limiter_dependencies()
    app.dependency_overrides[deps.get_session] = _get_session_override  # type: ignore
    app.dependency_overrides[deps.get_redis] = _get_redis_override
    app.dependency_overrides[deps.get_publisher] = _get_publisher_override

    # ASGITransport does not run the lifespan, so no broker/Redis is contacted.
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
