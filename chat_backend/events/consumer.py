"""
Receive loop for the notification queue.

The loop is single-threaded: each message is fully dispatched (including a
slow SMTP call or the simulated delay) before the next one is taken.

States:
    CONNECTING -> READY -> (RECEIVING <-> IDLE) -> TERMINATED | STOPPED

Acknowledgement policies:
    auto   - broker forgets the message as soon as it is delivered to us
             (at-most-once: a crash loses it and everything buffered with it;
             a graceful stop still dispatches the buffered messages).
    manual - message is acked after dispatch returns (at-least-once: a crash
             during dispatch means redelivery).
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any

from aio_pika.abc import AbstractChannel, AbstractIncomingMessage, AbstractQueue
from aio_pika.exceptions import AMQPError, ChannelInvalidStateError

from chat_backend.notifications.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

DEFAULT_RECEIVE_TIMEOUT = 5.0


class ConsumerState(str, enum.Enum):
    CONNECTING = "connecting"
    READY = "ready"
    RECEIVING = "receiving"
    IDLE = "idle"
    TERMINATED = "terminated"
    STOPPED = "stopped"


class AckPolicy(str, enum.Enum):
    AUTO = "auto"
    MANUAL = "manual"


class ConsumerTerminatedError(RuntimeError):
    """Raised when the broker closes the channel under a running loop."""


class NotificationConsumer:
    """
    Pull messages from the notification queue and hand them to the dispatcher.

    Args:
        channel: Channel the queue was declared on; its closure is fatal.
        queue: Declared notification queue.
        dispatcher: Per-message handler, never raises.
        ack_policy: `AckPolicy.AUTO` (default) or `AckPolicy.MANUAL`.
        receive_timeout: Seconds to wait for a message before logging an
            idle cycle and checking for shutdown.
    """

    def __init__(
        self,
        channel: AbstractChannel,
        queue: AbstractQueue,
        dispatcher: NotificationDispatcher,
        ack_policy: AckPolicy = AckPolicy.AUTO,
        receive_timeout: float = DEFAULT_RECEIVE_TIMEOUT,
    ) -> None:
        self._channel = channel
        self._queue = queue
        self._dispatcher = dispatcher
        self._ack_policy = ack_policy
        self._receive_timeout = receive_timeout
        self._inbox: asyncio.Queue[AbstractIncomingMessage | BaseException] = asyncio.Queue()
        self._stopping = asyncio.Event()
        self.state = ConsumerState.READY
        self.processed = 0
        self._consumer_tag: str | None = None

    @property
    def auto_ack(self) -> bool:
        return self._ack_policy is AckPolicy.AUTO

    def stop(self) -> None:
        """Ask the loop to finish; noticed at the end of the current receive cycle."""
        logger.info("Shutdown requested")
        self._stopping.set()

    async def _on_message(self, message: AbstractIncomingMessage) -> None:
        await self._inbox.put(message)

    def _on_channel_close(self, sender: Any, exc: BaseException | None = None) -> None:
        if self._stopping.is_set():
            return
        self._inbox.put_nowait(
            exc if exc is not None else ConsumerTerminatedError("channel closed by broker")
        )

    async def run(self) -> None:
        """
        Consume until `stop()` is called or the broker fails.

        On a graceful stop the broker consumer is cancelled first, then every
        message already delivered to this process is dispatched.

        Raises:
            ConsumerTerminatedError: Consuming could not start, or the
                channel/connection closed under the loop.
        """
        try:
            if not self.auto_ack:
                await self._channel.set_qos(prefetch_count=1)
            self._consumer_tag = await self._queue.consume(
                self._on_message, no_ack=self.auto_ack
            )
        except (AMQPError, ChannelInvalidStateError, OSError) as exc:
            self.state = ConsumerState.TERMINATED
            logger.error("Failed to start consuming: %r", exc)
            raise ConsumerTerminatedError(f"failed to start consuming: {exc!r}") from exc

        self._channel.close_callbacks.add(self._on_channel_close)
        logger.info(
            "Starting event processing loop (ack=%s, timeout=%ss)",
            self._ack_policy.value,
            self._receive_timeout,
        )

        try:
            while not self._stopping.is_set():
                self.state = ConsumerState.RECEIVING
                try:
                    item = await asyncio.wait_for(
                        self._inbox.get(), timeout=self._receive_timeout
                    )
                except asyncio.TimeoutError:
                    self.state = ConsumerState.IDLE
                    logger.info("No messages (timeout), waiting...")
                    continue

                if isinstance(item, BaseException):
                    self.state = ConsumerState.TERMINATED
                    logger.error("Error consuming message: %r", item)
                    if isinstance(item, ConsumerTerminatedError):
                        raise item
                    raise ConsumerTerminatedError(f"broker error: {item!r}") from item

                await self._process(item)

            await self._cancel()
            await self._drain()
        finally:
            self._channel.close_callbacks.discard(self._on_channel_close)
            if self.state is not ConsumerState.TERMINATED:
                self.state = ConsumerState.STOPPED
                await self._cancel()

        logger.info("Consumer stopped after %d messages", self.processed)

    async def _cancel(self) -> None:
        """Stop broker deliveries. Safe to call twice."""
        tag, self._consumer_tag = self._consumer_tag, None
        if tag is None or self._channel.is_closed:
            return
        try:
            await self._queue.cancel(tag)
        except (AMQPError, ChannelInvalidStateError, OSError) as exc:
            logger.warning("Failed to cancel consumer %s: %r", tag, exc)

    async def _drain(self) -> None:
        """Dispatch messages that reached the inbox before the cancel."""
        buffered = 0
        while not self._inbox.empty():
            item = self._inbox.get_nowait()
            if isinstance(item, BaseException):
                continue
            await self._process(item)
            buffered += 1
        if buffered:
            logger.info("Dispatched %d buffered messages before stopping", buffered)

    async def _process(self, message: AbstractIncomingMessage) -> None:
        routing_key = message.routing_key or ""
        outcome = await self._dispatcher.dispatch(routing_key, message.body)
        self.processed += 1
        logger.info("Event %s handled: %s", routing_key, outcome.value)
        if not self.auto_ack:
            await message.ack()
