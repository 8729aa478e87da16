"""
RabbitMQ connection lifecycle.

`BrokerConnection` is the single owner of a connection + channel pair.
Processes acquire it once at startup (`async with`) and inject the channel,
exchange and queue into the publisher or consumer; it is closed on exit.
"""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractConnection
from aio_pika.exceptions import AMQPError

from chat_backend.events.topology import (
    EXCHANGE_NAME,
    QUEUE_NAME,
    Topology,
    ensure_topology,
)

logger = logging.getLogger(__name__)


class BrokerUnavailableError(RuntimeError):
    """Raised when the broker cannot be reached or rejects our credentials."""


async def connect_rabbit(
    dsn: str,
    timeout: float = 60.0,
    robust: bool = True,
    retry_interval: float = 1.0,
) -> AbstractConnection:
    """
    Connect to RabbitMQ, retrying until `timeout` seconds have passed.

    Args:
        dsn: AMQP DSN.
        timeout: Total retry window in seconds.
        robust: Use an auto-reconnecting connection.
        retry_interval: Pause between attempts.

    Raises:
        BrokerUnavailableError: No attempt succeeded within the window.
    """
    connect = aio_pika.connect_robust if robust else aio_pika.connect
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    last: Exception | None = None

    while True:
        try:
            return await connect(dsn)
        except (AMQPError, OSError) as e:
            last = e
            logger.warning("RabbitMQ not ready yet: %r", e)
        if loop.time() + retry_interval >= deadline:
            break
        await asyncio.sleep(retry_interval)

    raise BrokerUnavailableError(f"RabbitMQ not ready: {last!r}")


class BrokerConnection:
    """
    Scoped broker resource: connection, channel and declared topology.

    Usage:
        async with BrokerConnection(settings.rabbitmq_dsn) as broker:
            publisher = RabbitPublisher(broker.topology.exchange)
    """

    def __init__(
        self,
        dsn: str,
        exchange_name: str = EXCHANGE_NAME,
        queue_name: str = QUEUE_NAME,
        robust: bool = True,
        connect_timeout: float = 60.0,
    ) -> None:
        self._dsn = dsn
        self._exchange_name = exchange_name
        self._queue_name = queue_name
        self._robust = robust
        self._connect_timeout = connect_timeout
        self._connection: AbstractConnection | None = None
        self._channel: AbstractChannel | None = None
        self._topology: Topology | None = None

    @property
    def channel(self) -> AbstractChannel:
        if self._channel is None:
            raise RuntimeError("BrokerConnection is not open")
        return self._channel

    @property
    def topology(self) -> Topology:
        if self._topology is None:
            raise RuntimeError("BrokerConnection is not open")
        return self._topology

    @property
    def is_open(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def open(self) -> BrokerConnection:
        """
        Connect, open a channel and declare the topology.

        Raises:
            BrokerUnavailableError: Broker unreachable or authentication failed.
            TopologyError: Declaring the exchange/queue/bindings failed.
        """
        logger.info("Connecting to RabbitMQ (robust=%s)", self._robust)
        self._connection = await connect_rabbit(
            self._dsn, timeout=self._connect_timeout, robust=self._robust
        )
        try:
            self._channel = await self._connection.channel()
        except (AMQPError, OSError) as exc:
            await self.close()
            raise BrokerUnavailableError(f"failed to open channel: {exc!r}") from exc
        try:
            self._topology = await ensure_topology(
                self._channel,
                exchange_name=self._exchange_name,
                queue_name=self._queue_name,
            )
        except BaseException:
            await self.close()
            raise
        logger.info("Connected to RabbitMQ, topology ready")
        return self

    async def close(self) -> None:
        connection, self._connection = self._connection, None
        self._channel = None
        self._topology = None
        if connection is not None and not connection.is_closed:
            await connection.close()

    async def __aenter__(self) -> BrokerConnection:
        return await self.open()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
