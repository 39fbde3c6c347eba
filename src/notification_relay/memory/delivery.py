"""FakeInboundDelivery — an InboundDelivery that counts acknowledgements."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class FakeInboundDelivery:
    body: bytes
    routing_key: str
    headers: dict[str, Any] = field(default_factory=dict)
    ack_count: int = 0

    async def ack(self) -> None:
        self.ack_count += 1
