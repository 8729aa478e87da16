"""RabbitMQ consumer that turns chat events into notification emails.

Run with `python -m chat_backend.consumers.notification_consumer`.

Exit codes:
    0 - graceful shutdown (SIGINT/SIGTERM).
    1 - broker unreachable, topology declaration failed, consuming could not
        start, or the broker closed the channel while consuming.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from chat_backend.core.config import Settings, get_settings
from chat_backend.core.logging import configure_logging
from chat_backend.events.broker import BrokerConnection, BrokerUnavailableError
from chat_backend.events.consumer import AckPolicy, ConsumerTerminatedError, NotificationConsumer
from chat_backend.events.topology import TopologyError
from chat_backend.notifications.dispatcher import NotificationDispatcher
from chat_backend.notifications.mail import build_mail_transport

logger = logging.getLogger(__name__)


def _install_signal_handlers(consumer: NotificationConsumer) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, consumer.stop)
        except NotImplementedError:  # pragma: no cover - non-Unix event loops
            pass


async def main(settings: Settings | None = None) -> int:
    """Connect, declare topology and consume indefinitely. Returns the exit code."""
    settings = settings or get_settings()
    logger.info("Starting notification service")

    dispatcher = NotificationDispatcher(
        transport=build_mail_transport(settings),
        test_recipient=settings.test_email_recipient or None,
    )

    broker = BrokerConnection(
        settings.rabbitmq_dsn,
        exchange_name=settings.rabbitmq_exchange,
        queue_name=settings.rabbitmq_queue,
        robust=False,
        connect_timeout=settings.rabbitmq_connect_timeout_seconds,
    )
    try:
        await broker.open()
    except (BrokerUnavailableError, TopologyError) as exc:
        logger.error("Failed to connect to RabbitMQ: %s. Exiting.", exc)
        return 1

    try:
        consumer = NotificationConsumer(
            channel=broker.channel,
            queue=broker.topology.queue,
            dispatcher=dispatcher,
            ack_policy=AckPolicy(settings.consumer_ack_policy),
            receive_timeout=settings.consumer_receive_timeout_seconds,
        )
        _install_signal_handlers(consumer)
        logger.info("Notification service is ready and listening")
        await consumer.run()
    except ConsumerTerminatedError as exc:
        logger.error("Consumer terminated: %s", exc)
        return 1
    finally:
        await broker.close()

    return 0


def run() -> None:
    """Console-script entrypoint."""
    configure_logging(get_settings().log_level)
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
