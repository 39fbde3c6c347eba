from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IMessagePublisher(Protocol):
    """
    Port for publishing raw bodies to a named exchange on the messaging backbone.

    Must be safe for concurrent use by multiple in-flight deliveries.
    """

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        headers: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Publish *body* to *exchange* with *routing_key*.

        Args:
            exchange: Target exchange name.
            routing_key: Routing key for topic matching.
            body: Raw message bytes, published unmodified.
            headers: Optional transport headers (retry metadata, ``x-delay``).
        """
        ...
