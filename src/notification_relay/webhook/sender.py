"""Discord webhook sender with a short in-process retry loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from ..delivery import DeliveryRecord, RenderedMessage
from ..exceptions import NonRetryableError, RetryableError
from ..ports.sender import IMessageSender
from ..sanitization import redact_webhook_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 10.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RATE_LIMIT_MS = 5000
SERVER_ERROR_BACKOFF_S = 1.0


def parse_retry_after(value: str | None, default_ms: int = DEFAULT_RATE_LIMIT_MS) -> int:
    """Convert a ``retry-after`` header in seconds to milliseconds."""
    if value is None:
        return default_ms
    try:
        seconds = float(value.strip())
    except ValueError:
        return default_ms
    if seconds < 0:
        return default_ms
    return int(seconds * 1000)


class DiscordWebhookSender(IMessageSender):
    """
    POSTs a rendered message as a Discord embed to one webhook URL.

    2xx succeeds. 429 and other 4xx fail at once (retryable and non-retryable
    respectively). 5xx, timeouts and network errors use up to ``max_attempts``
    in-process attempts before failing as retryable. Logs only ever carry the
    redacted URL.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_S,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        rate_limit_default_ms: int = DEFAULT_RATE_LIMIT_MS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.rate_limit_default_ms = rate_limit_default_ms
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def deliver(self, destination: str, message: RenderedMessage) -> DeliveryRecord:
        redacted = redact_webhook_url(destination)
        payload = message.to_webhook_payload()

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self._client.post(
                    destination,
                    json=payload,
                    timeout=self.timeout,
                )
            except httpx.TimeoutException as e:
                logger.warning(
                    "Discord webhook timeout",
                    extra={"destination": redacted, "attempt": attempt},
                )
                if attempt == self.max_attempts:
                    raise RetryableError(
                        "Discord webhook timeout", "TIMEOUT", {"attempts": attempt}
                    ) from e
                continue
            except httpx.RequestError as e:
                logger.error(
                    "Discord webhook error",
                    extra={"destination": redacted, "attempt": attempt, "error": str(e)},
                )
                if attempt == self.max_attempts:
                    raise RetryableError(
                        f"Network error: {e}", "NETWORK_ERROR", {"attempts": attempt}
                    ) from e
                continue

            status = response.status_code
            if response.is_success:
                logger.debug(
                    "Discord webhook sent",
                    extra={"destination": redacted, "status": status, "attempt": attempt},
                )
                return DeliveryRecord.sent(redacted, attempts=attempt, status_code=status)

            if status == 429:
                wait_ms = parse_retry_after(
                    response.headers.get("retry-after"), self.rate_limit_default_ms
                )
                logger.warning(
                    "Discord rate limited",
                    extra={"destination": redacted, "retry_after_ms": wait_ms},
                )
                raise RetryableError(
                    "Rate limited by Discord", "RATE_LIMITED", {"retryAfterMs": wait_ms}
                )

            if status >= 500:
                logger.warning(
                    "Discord server error",
                    extra={"destination": redacted, "status": status, "attempt": attempt},
                )
                if attempt == self.max_attempts:
                    raise RetryableError(
                        f"Discord server error: {status}",
                        "SERVER_ERROR",
                        {"status": status},
                    )
                await self._sleep(SERVER_ERROR_BACKOFF_S * attempt)
                continue

            raise NonRetryableError(
                f"Discord client error: {status}",
                "CLIENT_ERROR",
                {"status": status, "body": response.text},
            )

        # Unreachable: every branch of the last attempt returns or raises.
        raise RetryableError("Discord delivery attempts exhausted", "NETWORK_ERROR")

    async def aclose(self) -> None:
        """Close the HTTP client if this sender created it."""
        if self._owns_client:
            await self._client.aclose()
