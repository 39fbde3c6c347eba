"""NotificationRelay — the per-delivery intake and dispatch state machine.

Each inbound delivery follows exactly one path:

- ``Received -> Parsed -> Processed``
- ``Received -> ParseFailed -> DeadLettered``
- ``Received -> Parsed -> ProcessingFailed -> Rescheduled | DeadLettered``

The inbound delivery is positively acknowledged exactly once on every path and
never nacked: native requeue cannot carry the retry headers, so every retry is
a brand new message.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from .correlation import generate_correlation_id, set_correlation_id
from .dead_letter import DeadLetterEscalator
from .envelope import Envelope
from .exceptions import NonRetryableError, classify
from .fanout import FanoutDeliveryCoordinator
from .retry import Escalate, RetryPolicy, RetryScheduler
from .serialization import parse_envelope

logger = logging.getLogger(__name__)


class Outcome(Enum):
    """Terminal state of one inbound delivery."""

    PROCESSED = "processed"
    RESCHEDULED = "rescheduled"
    DEAD_LETTERED = "dead_lettered"


@runtime_checkable
class InboundDelivery(Protocol):
    """One message as received from the backbone."""

    @property
    def body(self) -> bytes: ...

    @property
    def routing_key(self) -> str: ...

    @property
    def headers(self) -> Mapping[str, Any]: ...

    async def ack(self) -> None: ...


class NotificationRelay:
    """Parses, fans out, and decides the fate of each inbound delivery."""

    def __init__(
        self,
        coordinator: FanoutDeliveryCoordinator,
        retry_policy: RetryPolicy,
        scheduler: RetryScheduler,
        escalator: DeadLetterEscalator,
    ) -> None:
        self.coordinator = coordinator
        self.retry_policy = retry_policy
        self.scheduler = scheduler
        self.escalator = escalator

    async def handle(self, delivery: InboundDelivery) -> Outcome:
        set_correlation_id(generate_correlation_id())
        routing_key = delivery.routing_key
        logger.debug("Received message", extra={"routing_key": routing_key})

        try:
            envelope = parse_envelope(delivery.body, routing_key, delivery.headers)
        except NonRetryableError as e:
            await delivery.ack()
            logger.error(
                "Non-retryable error",
                extra={"routing_key": routing_key, "code": e.code, "error": e.message},
            )
            # Malformed input is never retried, whatever the headers say.
            unparsed = Envelope(routing_key=routing_key, body=delivery.body)
            await self.escalator.escalate(unparsed, 0, e)
            return Outcome.DEAD_LETTERED

        try:
            await self.coordinator.deliver_all(envelope)
        except Exception as e:  # noqa: BLE001
            await delivery.ack()
            return await self._dispose(envelope, e)

        await delivery.ack()
        logger.info("Message processed successfully", extra={"routing_key": routing_key})
        return Outcome.PROCESSED

    async def _dispose(self, envelope: Envelope, exc: Exception) -> Outcome:
        error = classify(exc)
        log_extra = {
            "routing_key": envelope.routing_key,
            "code": error.code,
            "error": error.message,
        }

        if isinstance(error, NonRetryableError):
            logger.error("Non-retryable error", extra=log_extra)
            await self.escalator.escalate(envelope, 0, error)
            return Outcome.DEAD_LETTERED

        if error is exc:
            logger.warning("Retryable error", extra=log_extra)
        else:
            logger.error("Unexpected error", extra=log_extra, exc_info=exc)

        decision = self.retry_policy.schedule(envelope.retry_history, error)
        if isinstance(decision, Escalate):
            logger.warning(
                "Max retries exceeded, escalating",
                extra={
                    "routing_key": envelope.routing_key,
                    "retry_count": decision.retry_count,
                },
            )
            await self.escalator.escalate(envelope, decision.retry_count, error)
            return Outcome.DEAD_LETTERED

        await self.scheduler.reschedule(envelope, decision)
        return Outcome.RESCHEDULED
