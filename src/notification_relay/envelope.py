"""Envelope and RetryHistory — immutable units of work flowing through the relay."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

DLQ_SEGMENT = "dlq"


class RetryHistory(BaseModel):
    """Retry metadata carried out-of-band as transport headers.

    ``retry_count`` only grows along one failure chain and
    ``first_failure_timestamp`` is written once, on the first failure.
    """

    model_config = ConfigDict(frozen=True)

    retry_count: int = Field(default=0, ge=0)
    first_failure_timestamp: datetime | None = None
    last_error: str | None = None
    delay_ms: int = Field(default=0, ge=0)


class Envelope(BaseModel):
    """One inbound notification: routing key, decoded payload and raw body.

    ``body`` keeps the exact bytes received so archival never republishes a
    re-encoded document.
    """

    model_config = ConfigDict(frozen=True)

    routing_key: str
    payload: dict[str, object] = Field(default_factory=dict)
    body: bytes = b""
    retry_history: RetryHistory | None = None

    @property
    def retry_count(self) -> int:
        return self.retry_history.retry_count if self.retry_history else 0

    @property
    def is_dead_letter_alert(self) -> bool:
        return is_dead_letter_routing_key(self.routing_key)


def is_dead_letter_routing_key(routing_key: str) -> bool:
    """True for alert keys such as ``notifications.dlq.<service>`` or ``dlq.<service>``."""
    segments = routing_key.split(".")
    if segments[0] == DLQ_SEGMENT:
        return True
    return len(segments) > 1 and segments[1] == DLQ_SEGMENT
