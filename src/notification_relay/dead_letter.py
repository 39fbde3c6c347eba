"""Dead-letter escalation — archive the original message and raise a visible alert."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from .serialization import encode_json

if TYPE_CHECKING:
    from .envelope import Envelope
    from .ports.messaging import IMessagePublisher

logger = logging.getLogger(__name__)

ORIGINAL_MESSAGE_MAX_CHARS = 500


class DeadLetterRecord(BaseModel):
    """Alert document published under ``notifications.dlq.<service>``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    service: str
    queue: str
    error: str
    retry_count: int = Field(ge=0, alias="retryCount")
    original_message: str = Field(alias="originalMessage")
    timestamp: datetime
    routing_key: str = Field(alias="routingKey")

    def to_bytes(self) -> bytes:
        return encode_json(self.model_dump(mode="json", by_alias=True))


def alert_routing_key(service: str) -> str:
    return f"notifications.dlq.{service}"


def build_dead_letter_record(
    envelope: Envelope,
    retry_count: int,
    error: BaseException,
    *,
    service: str,
    queue: str,
    max_original_chars: int = ORIGINAL_MESSAGE_MAX_CHARS,
    now: datetime | None = None,
) -> DeadLetterRecord:
    """Describe an escalated envelope; ``original_message`` is cut to ``max_original_chars``."""
    original = envelope.body.decode("utf-8", errors="replace")
    return DeadLetterRecord(
        service=service,
        queue=queue,
        error=str(error),
        retry_count=retry_count,
        original_message=original[:max_original_chars],
        timestamp=now or datetime.now(timezone.utc),
        routing_key=envelope.routing_key,
    )


class DeadLetterEscalator:
    """Routes exhausted or non-retryable envelopes to the dead-letter exchange.

    Publishes the unmodified body for archival, then a :class:`DeadLetterRecord`
    back onto the main exchange so the failure is delivered like any other
    notification. An envelope that is itself an alert is archived only, when
    ``suppress_nested_alerts`` is set, so a broken alert cannot alert about itself.
    """

    def __init__(
        self,
        publisher: IMessagePublisher,
        *,
        exchange: str,
        dlq_exchange: str,
        service: str,
        queue: str,
        max_original_chars: int = ORIGINAL_MESSAGE_MAX_CHARS,
        suppress_nested_alerts: bool = True,
    ) -> None:
        self._publisher = publisher
        self._exchange = exchange
        self._dlq_exchange = dlq_exchange
        self._service = service
        self._queue = queue
        self._max_original_chars = max_original_chars
        self._suppress_nested_alerts = suppress_nested_alerts

    async def escalate(
        self,
        envelope: Envelope,
        retry_count: int,
        error: BaseException,
    ) -> DeadLetterRecord:
        record = build_dead_letter_record(
            envelope,
            retry_count,
            error,
            service=self._service,
            queue=self._queue,
            max_original_chars=self._max_original_chars,
        )
        logger.error(
            "Publishing to dead-letter exchange",
            extra={
                "routing_key": envelope.routing_key,
                "retry_count": retry_count,
                "error": record.error,
            },
        )
        await self._publisher.publish(
            self._dlq_exchange, envelope.routing_key, envelope.body
        )

        if self._suppress_nested_alerts and envelope.is_dead_letter_alert:
            logger.error(
                "Dead-letter alert could not be delivered; not raising another alert",
                extra={"routing_key": envelope.routing_key},
            )
            return record

        await self._publisher.publish(
            self._exchange, alert_routing_key(self._service), record.to_bytes()
        )
        logger.info(
            "Dead-letter alert published",
            extra={"routing_key": alert_routing_key(self._service)},
        )
        return record
