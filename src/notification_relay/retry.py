"""RetryPolicy — header-carried exponential backoff with escalation after max retries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Union

from .envelope import Envelope, RetryHistory
from .serialization import history_to_headers

if TYPE_CHECKING:
    from .ports.messaging import IMessagePublisher

logger = logging.getLogger(__name__)

MAX_RETRIES = 20
BASE_DELAY_MS = 1000
MAX_DELAY_MS = 16 * 60 * 60 * 1000


@dataclass(frozen=True)
class Reschedule:
    """Publish again after ``delay_ms`` carrying ``history``."""

    delay_ms: int
    history: RetryHistory


@dataclass(frozen=True)
class Escalate:
    """Retries are exhausted; dead-letter with ``retry_count``."""

    retry_count: int


RetryDecision = Union[Reschedule, Escalate]


class RetryPolicy:
    """Exponential backoff over a failure chain of independently redelivered messages.

    The decision is a pure function of the previous history and the error;
    publishing is left to :class:`RetryScheduler`.
    """

    def __init__(
        self,
        *,
        max_retries: int = MAX_RETRIES,
        base_delay_ms: int = BASE_DELAY_MS,
        max_delay_ms: int = MAX_DELAY_MS,
    ) -> None:
        """Configure the schedule.

        Args:
            max_retries: Reschedules allowed before escalation.
            base_delay_ms: Delay before the first retry.
            max_delay_ms: Cap on any single delay.
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if base_delay_ms < 0 or max_delay_ms < 0:
            raise ValueError("base_delay_ms and max_delay_ms must be >= 0")
        if base_delay_ms > max_delay_ms:
            raise ValueError("base_delay_ms must be <= max_delay_ms")
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    def delay_ms_for(self, retry_count: int) -> int:
        """Return the delay for the given 1-based retry count.

        ``base_delay_ms * 2^(retry_count-1)``, capped by ``max_delay_ms``;
        0 for counts below 1.
        """
        if retry_count < 1:
            return 0
        # Cap the exponent so huge counts never build huge integers.
        exponent = min(retry_count - 1, 64)
        return min(self.base_delay_ms * (2**exponent), self.max_delay_ms)

    def schedule(
        self,
        history: RetryHistory | None,
        error: BaseException,
        now: datetime | None = None,
    ) -> RetryDecision:
        retry_count = (history.retry_count if history else 0) + 1
        if retry_count > self.max_retries:
            return Escalate(retry_count=retry_count)

        first_failure = None
        if history is not None:
            first_failure = history.first_failure_timestamp
        if first_failure is None:
            first_failure = now or datetime.now(timezone.utc)

        delay_ms = self.delay_ms_for(retry_count)
        return Reschedule(
            delay_ms=delay_ms,
            history=RetryHistory(
                retry_count=retry_count,
                first_failure_timestamp=first_failure,
                last_error=str(error),
                delay_ms=delay_ms,
            ),
        )


class RetryScheduler:
    """Republishes an envelope's original body to the delayed exchange."""

    def __init__(self, publisher: IMessagePublisher, delay_exchange: str) -> None:
        self._publisher = publisher
        self._delay_exchange = delay_exchange

    async def reschedule(self, envelope: Envelope, decision: Reschedule) -> None:
        logger.info(
            "Publishing to retry exchange",
            extra={
                "routing_key": envelope.routing_key,
                "retry_count": decision.history.retry_count,
                "delay_ms": decision.delay_ms,
            },
        )
        await self._publisher.publish(
            self._delay_exchange,
            envelope.routing_key,
            envelope.body,
            headers=history_to_headers(decision.history),
        )
