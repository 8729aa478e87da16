"""
Event publishing for the API server.

This module defines:
- Publisher protocol (interface) used by services.
- RabbitMQ-based publisher bound to the `chat_events` exchange.

Responsibilities:
- Encode events and publish them as persistent messages.
- Keep the write path independent from the event path: a failed publish is
  logged and swallowed, never raised into the request.

Non-responsibilities:
- Business decisions (when to publish): services publish after commit.
- Routing-key validation: unbound keys are accepted and simply not delivered.
- Retry policies / outbox (events may be lost while the broker is down).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import aio_pika
from aio_pika.abc import AbstractExchange

from chat_backend.events.codec import Event, encode

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    """
    Messaging publisher protocol.

    Services depend on this protocol so tests can swap in a collecting fake.
    """

    async def publish(self, routing_key: str, event: Event) -> None:
        """
        Publish an event under a routing key.

        Args:
            routing_key: Topic routing key, e.g. `user.registered`.
            event: Event to send.
        """
        ...

    @property
    def is_connected(self) -> bool:
        """Whether published events can reach the broker."""
        ...


class RabbitPublisher:
    """
    RabbitMQ-based implementation of the Publisher protocol.

    Notes:
        - Uses a lifespan-managed exchange (see `BrokerConnection`).
        - Publishes on the shared channel are serialized with a lock, since
          concurrent requests share one channel.
        - Constructed with `exchange=None` it runs degraded: every publish is
          logged and dropped.
    """

    def __init__(self, exchange: AbstractExchange | None) -> None:
        self._exchange = exchange
        self._lock = asyncio.Lock()

    @classmethod
    def disconnected(cls) -> RabbitPublisher:
        """Publisher used when the API started without a broker."""
        return cls(exchange=None)

    @property
    def is_connected(self) -> bool:
        return self._exchange is not None

    async def publish(self, routing_key: str, event: Event) -> None:
        """
        Publish a persistent event message to the exchange.

        Side effects:
            - Logs and drops the event when not connected or on publish error.
        """
        if self._exchange is None:
            logger.error("RabbitMQ not connected, dropping %s event", routing_key)
            return

        body = encode(event)
        message = aio_pika.Message(
            body=body,
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
        )

        try:
            async with self._lock:
                await self._exchange.publish(message, routing_key=routing_key)
        except Exception:
            logger.exception("Failed to publish %s event", routing_key)
            return

        logger.info("Published event: %s -> %s", routing_key, body[:100].decode("utf-8", "replace"))
