"""RabbitMQPublisher — IMessagePublisher over named exchanges with publisher confirms."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import aio_pika

from ..exceptions import MessagingConnectionError, MessagingError
from ..ports.messaging import IMessagePublisher

if TYPE_CHECKING:
    from .connection import RabbitMQConnectionManager

logger = logging.getLogger(__name__)


class RabbitMQPublisher(IMessagePublisher):
    """RabbitMQ adapter implementing IMessagePublisher.

    Bodies are published unmodified as persistent messages. The channel has
    publisher confirms enabled, so ``publish`` returns once the broker has
    accepted the message.
    """

    def __init__(
        self,
        connection: RabbitMQConnectionManager,
        *,
        content_type: str = "application/json",
    ) -> None:
        self._connection = connection
        self._content_type = content_type

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        headers: Mapping[str, Any] | None = None,
    ) -> None:
        """Publish *body* to *exchange* with *routing_key* and optional headers."""
        await self._connection.connect()
        target = await self._connection.get_exchange(exchange)
        message = aio_pika.Message(
            body=body,
            content_type=self._content_type,
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            headers=dict(headers or {}),
        )
        try:
            await target.publish(message, routing_key=routing_key)
        except (ConnectionError, OSError) as e:
            raise MessagingConnectionError(str(e)) from e
        except aio_pika.AMQPException as e:
            raise MessagingError(f"Publish to {exchange!r} failed: {e}") from e
        logger.debug(
            "Published message",
            extra={"exchange": exchange, "routing_key": routing_key},
        )

    async def health_check(self) -> bool:
        """Return True if the connection is healthy."""
        return await self._connection.health_check()
