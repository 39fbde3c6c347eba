"""Delivery sender port."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..delivery import DeliveryRecord, RenderedMessage


@runtime_checkable
class IMessageSender(Protocol):
    """
    Port for delivering one rendered message to one destination.

    Implementations raise ``RetryableError`` or ``NonRetryableError`` on failure
    and return a ``DeliveryRecord`` on success.
    """

    async def deliver(self, destination: str, message: RenderedMessage) -> DeliveryRecord:
        """Deliver *message* to *destination*."""
        ...
