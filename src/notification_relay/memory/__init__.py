"""In-memory adapters for testing."""

from __future__ import annotations

from .delivery import FakeInboundDelivery
from .publisher import InMemoryPublisher, PublishedMessage
from .sender import InMemorySender, SentMessage

__all__ = [
    "FakeInboundDelivery",
    "InMemoryPublisher",
    "InMemorySender",
    "PublishedMessage",
    "SentMessage",
]
