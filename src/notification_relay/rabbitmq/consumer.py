"""RabbitMQConsumer — prefetch-bounded intake feeding the NotificationRelay."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from aio_pika.abc import AbstractIncomingMessage, AbstractQueue

    from ..relay import NotificationRelay
    from .connection import RabbitMQConnectionManager

logger = logging.getLogger(__name__)


class AmqpInboundDelivery:
    """Adapts an aio_pika incoming message to the relay's InboundDelivery."""

    def __init__(self, message: AbstractIncomingMessage) -> None:
        self._message = message

    @property
    def body(self) -> bytes:
        return self._message.body

    @property
    def routing_key(self) -> str:
        return self._message.routing_key or ""

    @property
    def headers(self) -> Mapping[str, Any]:
        return self._message.headers or {}

    async def ack(self) -> None:
        await self._message.ack()


class RabbitMQConsumer:
    """Consumes the notifications queue with manual acks.

    aio_pika runs each delivered message in its own task, so up to
    ``prefetch_count`` deliveries are processed concurrently. Acknowledgement
    is entirely the relay's job.
    """

    def __init__(
        self,
        connection: RabbitMQConnectionManager,
        relay: NotificationRelay,
        *,
        queue_name: str = "notifications",
        prefetch_count: int = 10,
    ) -> None:
        """Configure consumer.

        Args:
            connection: Shared connection manager.
            relay: Handles every delivery to a terminal acknowledgement.
            queue_name: Existing queue to consume.
            prefetch_count: QoS prefetch (max in-flight deliveries).
        """
        self._connection = connection
        self._relay = relay
        self._queue_name = queue_name
        self._prefetch_count = prefetch_count
        self._queue: AbstractQueue | None = None
        self._consumer_tag: str | None = None
        self._in_flight: set[asyncio.Task[Any]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def on_message(self, message: AbstractIncomingMessage) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._in_flight.add(task)
        try:
            await self._relay.handle(AmqpInboundDelivery(message))
        except Exception:  # noqa: BLE001
            # Only a failed disposition publish lands here; the delivery is
            # already acked, so the broker will not redeliver it.
            logger.exception(
                "Failed to dispose of message",
                extra={"routing_key": message.routing_key},
            )
        finally:
            if task is not None:
                self._in_flight.discard(task)

    async def start(self) -> None:
        """Begin consuming; the queue must already exist."""
        await self._connection.connect()
        channel = self._connection.channel
        await channel.set_qos(prefetch_count=self._prefetch_count)
        self._queue = await channel.get_queue(self._queue_name, ensure=True)
        self._consumer_tag = await self._queue.consume(self.on_message, no_ack=False)
        logger.info(
            "Consumer started",
            extra={"queue": self._queue_name, "prefetch": self._prefetch_count},
        )

    async def stop(self, grace_period: float = 15.0) -> None:
        """Stop accepting deliveries and wait up to *grace_period* for in-flight ones.

        Deliveries still running afterwards are cancelled unacked, so the
        broker redelivers them.
        """
        if self._queue is not None and self._consumer_tag is not None:
            await self._queue.cancel(self._consumer_tag)
            self._consumer_tag = None
        pending = set(self._in_flight)
        if not pending:
            return
        logger.info("Waiting for in-flight deliveries", extra={"count": len(pending)})
        _, still_running = await asyncio.wait(pending, timeout=grace_period)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(
                "Abandoned in-flight deliveries for redelivery",
                extra={"count": len(still_running)},
            )

    async def health_check(self) -> bool:
        """Return True if the connection is healthy."""
        return await self._connection.health_check()
