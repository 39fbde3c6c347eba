"""InMemoryPublisher — IMessagePublisher with assertion helpers for tests."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..ports.messaging import IMessagePublisher


@dataclass(frozen=True)
class PublishedMessage:
    """Record of one publish for test assertions."""

    exchange: str
    routing_key: str
    body: bytes
    headers: dict[str, Any] = field(default_factory=dict)

    def json(self) -> Any:
        return json.loads(self.body)


class InMemoryPublisher(IMessagePublisher):
    """Buffers publishes in order; optionally fails on chosen exchanges."""

    def __init__(self, *, fail_on: set[str] | None = None) -> None:
        self._messages: list[PublishedMessage] = []
        self._fail_on = set(fail_on or ())

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        headers: Mapping[str, Any] | None = None,
    ) -> None:
        if exchange in self._fail_on:
            raise ConnectionError(f"publish to {exchange} failed")
        self._messages.append(
            PublishedMessage(exchange, routing_key, body, dict(headers or {}))
        )

    def get_published(self, exchange: str | None = None) -> list[PublishedMessage]:
        """Return all publishes so far, optionally for one exchange."""
        if exchange is None:
            return list(self._messages)
        return [m for m in self._messages if m.exchange == exchange]

    def assert_published(self, exchange: str, count: int = 1) -> None:
        """Assert exactly `count` messages went to `exchange`."""
        published = self.get_published(exchange)
        assert len(published) == count, (
            f"Expected {count} message(s) on exchange={exchange!r}, "
            f"got {len(published)}. Published: "
            f"{[(m.exchange, m.routing_key) for m in self._messages]}"
        )

    def clear(self) -> None:
        self._messages.clear()
