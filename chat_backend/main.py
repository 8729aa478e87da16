"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import redis.asyncio as redis
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi_limiter import FastAPILimiter
from sqlalchemy import text

from chat_backend.api.deps import PublisherDep, RedisDep, SessionDep
from chat_backend.api.routes.auth import router as auth_router
from chat_backend.api.routes.messages import router as messages_router
from chat_backend.api.routes.rooms import router as rooms_router
from chat_backend.api.routes.translation import router as translation_router
from chat_backend.core.config import get_settings
from chat_backend.core.logging import configure_logging
from chat_backend.core.security import jwt_secret
from chat_backend.db.session import dispose_engine
from chat_backend.events.broker import BrokerConnection, BrokerUnavailableError
from chat_backend.events.publisher import RabbitPublisher
from chat_backend.events.topology import TopologyError

settings = get_settings()
logger = logging.getLogger(__name__)


async def _open_broker() -> BrokerConnection | None:
    """
    Open the publishing connection.

    Returns:
        The open broker, or None when it is unreachable and not required.

    Raises:
        BrokerUnavailableError / TopologyError: Only with RABBITMQ_REQUIRED=true.
    """
    broker = BrokerConnection(
        settings.rabbitmq_dsn,
        exchange_name=settings.rabbitmq_exchange,
        queue_name=settings.rabbitmq_queue,
        robust=True,
        connect_timeout=settings.rabbitmq_connect_timeout_seconds,
    )
    try:
        return await broker.open()
    except (BrokerUnavailableError, TopologyError) as exc:
        if settings.rabbitmq_required:
            raise
        logger.error("Failed to connect to RabbitMQ, events will be dropped: %s", exc)
        return None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging(settings.log_level)
    # JWT_SECRET_KEY is mandatory for the API server.
    jwt_secret()

    redis_client = redis.from_url(settings.redis_dsn, encoding="utf-8", decode_responses=True)
    await FastAPILimiter.init(redis_client)

    broker = await _open_broker()
    if broker is None:
        app.state.publisher = RabbitPublisher.disconnected()
    else:
        app.state.publisher = RabbitPublisher(broker.topology.exchange)

    try:
        yield
    finally:
        if broker is not None:
            await broker.close()
        await redis_client.aclose()
        await dispose_engine()


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# Security: CORS protection
allowed_origins = [o.strip() for o in settings.api_cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(rooms_router)
app.include_router(messages_router)
app.include_router(translation_router)


@app.get("/healthz")
async def healthz(
    session: SessionDep, redis: RedisDep, publisher: PublisherDep  # type: ignore
) -> dict[str, Any]:
    status: dict[str, Any] = {}

    # Postgres
    try:
        await session.execute(text("SELECT 1"))
        status["postgres"] = "ok"
    except Exception as e:
        status["postgres"] = f"fail: {type(e).__name__}"

    # Redis
    try:
        pong = await redis.ping()
        status["redis"] = "ok" if pong else "fail"
    except Exception as e:
        status["redis"] = f"fail: {type(e).__name__}"

    # RabbitMQ (publishing channel owned by the lifespan)
    status["rabbitmq"] = "ok" if publisher.is_connected else "fail: disconnected"

    if any(v != "ok" for v in status.values()):
        raise HTTPException(status_code=503, detail=status)

    return {"status": "ok", "detail": status}
