"""Application wiring, startup and graceful shutdown."""

from __future__ import annotations

import asyncio
import logging
import signal

import httpx

from .config import RelaySettings, get_settings
from .dead_letter import DeadLetterEscalator
from .fanout import FanoutDeliveryCoordinator
from .rabbitmq import RabbitMQConnectionManager, RabbitMQConsumer, RabbitMQPublisher
from .relay import NotificationRelay
from .retry import RetryPolicy, RetryScheduler
from .routing import DestinationRouter
from .structured_logging import configure_logging
from .webhook import DiscordWebhookSender

logger = logging.getLogger(__name__)


class RelayApplication:
    """Builds the relay pipeline from settings and owns its outbound resources."""

    def __init__(
        self,
        settings: RelaySettings,
        *,
        connection: RabbitMQConnectionManager | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.connection = connection or RabbitMQConnectionManager(settings.rabbitmq_url)
        self.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout_s)
        )
        self.publisher = RabbitMQPublisher(self.connection)
        self.sender = DiscordWebhookSender(
            self.http_client,
            timeout=settings.http_timeout_s,
            max_attempts=settings.http_max_attempts,
            rate_limit_default_ms=settings.rate_limit_default_ms,
        )
        self.coordinator = FanoutDeliveryCoordinator(
            self.sender, DestinationRouter.from_settings(settings)
        )
        self.retry_policy = RetryPolicy(
            max_retries=settings.max_retries,
            base_delay_ms=settings.base_delay_ms,
            max_delay_ms=settings.max_delay_ms,
        )
        self.scheduler = RetryScheduler(self.publisher, settings.delay_exchange)
        self.escalator = DeadLetterEscalator(
            self.publisher,
            exchange=settings.exchange,
            dlq_exchange=settings.dlq_exchange,
            service=settings.service_name,
            queue=settings.queue,
            max_original_chars=settings.dlq_original_max_chars,
            suppress_nested_alerts=settings.suppress_nested_alerts,
        )
        self.relay = NotificationRelay(
            self.coordinator, self.retry_policy, self.scheduler, self.escalator
        )
        self.consumer = RabbitMQConsumer(
            self.connection,
            self.relay,
            queue_name=settings.queue,
            prefetch_count=settings.prefetch_count,
        )

    async def start(self) -> None:
        logger.info("Starting notification relay")
        await self.connection.connect()
        if self.settings.declare_topology:
            await self.connection.declare_topology(self.settings)
        await self.consumer.start()
        logger.info("Notification relay started")

    async def stop(self) -> None:
        logger.info("Shutting down")
        await self.consumer.stop(grace_period=self.settings.shutdown_grace_s)
        await self.http_client.aclose()
        await self.connection.close()
        logger.info("Shutdown complete")

    async def run(self) -> None:
        """Start, block until SIGINT/SIGTERM, then stop."""
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)
        await self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)
    try:
        asyncio.run(RelayApplication(settings).run())
    except Exception:
        logger.critical("Failed to start notification relay", exc_info=True)
        raise SystemExit(1) from None
