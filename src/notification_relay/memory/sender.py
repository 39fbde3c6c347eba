"""In-memory sender for test assertions."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from ..delivery import DeliveryRecord, RenderedMessage
from ..ports.sender import IMessageSender


@dataclass
class SentMessage:
    """Record of a delivery attempt for test assertions."""

    destination: str
    message: RenderedMessage


class InMemorySender(IMessageSender):
    """
    Test double (Fake) that records every delivery attempt.

    ``failures`` maps a destination to the exception raised for it; every
    attempt is recorded whether or not it fails.
    """

    def __init__(self, failures: dict[str, BaseException] | None = None) -> None:
        self.sent_messages: list[SentMessage] = []
        self.failures = dict(failures or {})

    async def deliver(self, destination: str, message: RenderedMessage) -> DeliveryRecord:
        self.sent_messages.append(SentMessage(destination, message))
        failure = self.failures.get(destination)
        if failure is not None:
            raise failure
        return DeliveryRecord.sent(destination)

    @property
    def call_counts(self) -> Counter[str]:
        return Counter(m.destination for m in self.sent_messages)

    def assert_sent(self, destination: str, count: int = 1) -> None:
        """Helper for test assertions."""
        actual = self.call_counts[destination]
        if actual != count:
            raise AssertionError(
                f"Expected {count} deliveries to {destination}, but found {actual}."
            )

    def clear(self) -> None:
        self.sent_messages.clear()
