"""Destination routing — resolves a routing key to zero or more webhook URLs."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from .envelope import DLQ_SEGMENT, is_dead_letter_routing_key

if TYPE_CHECKING:
    from .config import RelaySettings

logger = logging.getLogger(__name__)

ERRORS_WEBHOOK = "errors"


def routing_category(routing_key: str) -> str:
    """First segment of the key, or ``dlq`` for ``<origin>.dlq.<service>`` alerts."""
    segments = routing_key.split(".")
    if len(segments) > 1 and segments[1] == DLQ_SEGMENT:
        return DLQ_SEGMENT
    return segments[0].lower()


class DestinationRouter:
    """Maps routing keys to webhook destinations.

    The category's mapped webhook (or the default webhook) always receives the
    message; the ``errors`` webhook is added for error routes.
    """

    def __init__(
        self,
        *,
        default_webhook: str,
        webhooks: Mapping[str, str] | None = None,
        routes: Mapping[str, str] | None = None,
        error_routes: Sequence[str] = (),
    ) -> None:
        self._default_webhook = default_webhook
        self._webhooks = dict(webhooks or {})
        self._routes = dict(routes or {})
        self._error_routes = tuple(error_routes)

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> DestinationRouter:
        return cls(
            default_webhook=settings.discord_default_webhook,
            webhooks=settings.discord_webhooks,
            routes=settings.discord_routes,
            error_routes=settings.error_routes,
        )

    def is_error_route(self, routing_key: str) -> bool:
        if DLQ_SEGMENT in self._error_routes and is_dead_letter_routing_key(routing_key):
            return True
        return any(routing_key.startswith(prefix) for prefix in self._error_routes)

    def resolve(self, routing_key: str) -> list[str]:
        """Return destinations in dispatch order, without duplicates."""
        category = routing_category(routing_key)
        destinations: list[str] = []

        webhook_name = self._routes.get(category)
        mapped = self._webhooks.get(webhook_name) if webhook_name else None
        if mapped:
            destinations.append(mapped)
        elif self._default_webhook:
            destinations.append(self._default_webhook)

        errors_webhook = self._webhooks.get(ERRORS_WEBHOOK)
        if (
            errors_webhook
            and errors_webhook not in destinations
            and self.is_error_route(routing_key)
        ):
            destinations.append(errors_webhook)

        if not destinations:
            logger.debug(
                "No destinations for routing key", extra={"routing_key": routing_key}
            )
        return destinations
