"""
Broker topology for chat events.

One durable topic exchange fans events out; one durable, shared queue
collects the three event types the notification consumer handles.
Declaring is idempotent, so both the API server and the consumer run it on
every startup.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractExchange, AbstractQueue
from aio_pika.exceptions import AMQPError

from chat_backend.events.codec import EventType

logger = logging.getLogger(__name__)

EXCHANGE_NAME = "chat_events"
QUEUE_NAME = "notification_queue"
ROUTING_KEYS: tuple[str, ...] = tuple(t.value for t in EventType)


class TopologyError(RuntimeError):
    """Raised when an exchange/queue declaration or binding fails."""


@dataclass(frozen=True)
class Topology:
    """Declared broker objects, ready for publishing or consuming."""

    exchange: AbstractExchange
    queue: AbstractQueue
    bindings: frozenset[str]


async def ensure_topology(
    channel: AbstractChannel,
    exchange_name: str = EXCHANGE_NAME,
    queue_name: str = QUEUE_NAME,
    routing_keys: Iterable[str] = ROUTING_KEYS,
) -> Topology:
    """
    Declare the exchange, the queue and one binding per routing key.

    Args:
        channel: Open channel to declare on.
        exchange_name: Topic exchange name.
        queue_name: Shared notification queue name.
        routing_keys: Keys routed to the queue.

    Returns:
        Topology with the declared exchange, queue and bound keys.

    Raises:
        TopologyError: Broker rejected a declaration (for example an existing
            exchange of a different type) or the channel went away.
    """
    keys = tuple(routing_keys)
    try:
        exchange = await channel.declare_exchange(
            exchange_name,
            aio_pika.ExchangeType.TOPIC,
            durable=True,
            auto_delete=False,
            passive=False,
        )
        queue = await channel.declare_queue(
            queue_name,
            durable=True,
            exclusive=False,
            auto_delete=False,
        )
        for key in keys:
            await queue.bind(exchange, routing_key=key)
            logger.info("Bound %s to %s with %s", queue_name, exchange_name, key)
    except (AMQPError, OSError) as exc:
        raise TopologyError(f"failed to declare broker topology: {exc!r}") from exc

    return Topology(exchange=exchange, queue=queue, bindings=frozenset(keys))
