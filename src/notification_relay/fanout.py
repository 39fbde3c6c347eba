"""Fan-out delivery — one rendered message, many destinations, concurrently."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

from .delivery import DeliveryRecord, DeliveryStatus, RenderedMessage
from .envelope import Envelope
from .exceptions import DeliveryError, NonRetryableError, classify
from .ports.sender import IMessageSender
from .rendering import render
from .routing import DestinationRouter
from .sanitization import redact_webhook_url

logger = logging.getLogger(__name__)

Renderer = Callable[[str, Mapping[str, Any]], RenderedMessage]


class FanoutDeliveryCoordinator:
    """
    Renders an envelope once and delivers it to every resolved destination.

    Every destination is attempted exactly once per call, regardless of the
    others' outcomes. When any fail, the first failure in dispatch order is
    raised unchanged; callers cannot tell one failure from several.
    """

    def __init__(
        self,
        sender: IMessageSender,
        router: DestinationRouter,
        renderer: Renderer = render,
    ) -> None:
        self.sender = sender
        self.router = router
        self.renderer = renderer

    def _render(self, envelope: Envelope) -> RenderedMessage:
        try:
            return self.renderer(envelope.routing_key, envelope.payload)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            raise NonRetryableError(
                f"Cannot render payload: {e}",
                "RENDER_ERROR",
                {"routing_key": envelope.routing_key},
            ) from e

    async def deliver_all(self, envelope: Envelope) -> list[DeliveryRecord]:
        message = self._render(envelope)
        destinations = self.router.resolve(envelope.routing_key)
        if not destinations:
            logger.warning(
                "No destinations resolved; nothing to deliver",
                extra={"routing_key": envelope.routing_key},
            )
            return []

        # return_exceptions=True so one failing destination never cancels the others.
        results = await asyncio.gather(
            *(self.sender.deliver(d, message) for d in destinations),
            return_exceptions=True,
        )

        records: list[DeliveryRecord] = []
        first_error: DeliveryError | None = None
        for destination, result in zip(destinations, results):
            if isinstance(result, DeliveryRecord):
                records.append(result)
                continue
            if not isinstance(result, Exception):
                # CancelledError and friends must keep propagating.
                raise result
            error = classify(result)
            redacted = redact_webhook_url(destination)
            records.append(DeliveryRecord.failed(redacted, error=error.message))
            logger.error(
                "Delivery to destination failed",
                extra={
                    "routing_key": envelope.routing_key,
                    "destination": redacted,
                    "code": error.code,
                    "error": error.message,
                },
            )
            if first_error is None:
                first_error = error

        if first_error is not None:
            failed = sum(1 for r in records if r.status is DeliveryStatus.FAILED)
            logger.warning(
                "Fan-out partially failed",
                extra={
                    "routing_key": envelope.routing_key,
                    "failed": failed,
                    "total": len(destinations),
                },
            )
            raise first_error
        return records
