"""Process-wide logging setup shared by the API server and the consumer."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO", broker_log_level: str = "WARNING") -> None:
    """
    Configure root logging for a process entrypoint.

    Args:
        level: Level name for application loggers.
        broker_log_level: Level for the chatty AMQP client libraries.
    """
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("aiormq").setLevel(broker_log_level)
    logging.getLogger("aio_pika").setLevel(broker_log_level)
