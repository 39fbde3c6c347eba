"""Presentation and delivery tracking types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class DeliveryStatus(Enum):
    """Delivery status outcomes."""

    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class EmbedField:
    """One name/value row of a rendered message."""

    name: str
    value: str
    inline: bool = False


@dataclass(frozen=True)
class RenderedMessage:
    """Immutable, destination-agnostic rendering of an envelope."""

    title: str
    color: int
    description: str | None = None
    fields: tuple[EmbedField, ...] = ()
    url: str | None = None
    timestamp: str | None = None

    def to_embed(self) -> dict[str, Any]:
        """Return the Discord embed dict, omitting absent keys."""
        embed: dict[str, Any] = {"title": self.title, "color": self.color}
        if self.description is not None:
            embed["description"] = self.description
        if self.fields:
            embed["fields"] = [
                {"name": f.name, "value": f.value, "inline": f.inline}
                for f in self.fields
            ]
        if self.url is not None:
            embed["url"] = self.url
        if self.timestamp is not None:
            embed["timestamp"] = self.timestamp
        return embed

    def to_webhook_payload(self) -> dict[str, Any]:
        return {"embeds": [self.to_embed()]}


@dataclass(frozen=True)
class DeliveryRecord:
    """Immutable record of a delivery to one destination.

    ``destination`` is always the redacted form.
    """

    destination: str
    status: DeliveryStatus
    attempts: int = 1
    status_code: int | None = None
    error: str | None = None
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def sent(
        cls,
        destination: str,
        attempts: int = 1,
        status_code: int | None = None,
    ) -> DeliveryRecord:
        """Create a successful delivery record."""
        return cls(
            destination=destination,
            status=DeliveryStatus.SENT,
            attempts=attempts,
            status_code=status_code,
        )

    @classmethod
    def failed(
        cls,
        destination: str,
        error: str | None = None,
        attempts: int = 1,
    ) -> DeliveryRecord:
        """Create a failed delivery record."""
        return cls(
            destination=destination,
            status=DeliveryStatus.FAILED,
            attempts=attempts,
            error=error,
        )
