"""Exception hierarchy for notification-relay.

Every failure that can cross a component boundary is classified as either
:class:`RetryableError` (transient) or :class:`NonRetryableError` (a defect of
the message or request itself).
"""

from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Root exception for the notification relay."""


class DeliveryError(RelayError):
    """Base class for classified delivery failures.

    Carries a machine ``code`` and optional structured ``context``.
    """

    def __init__(
        self,
        message: str,
        code: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.context: dict[str, Any] = dict(context or {})
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"code={self.code!r}, context={self.context!r})"
        )


class RetryableError(DeliveryError):
    """Transient failure (timeout, network, HTTP 429/5xx); retrying may succeed."""


class NonRetryableError(DeliveryError):
    """Failure caused by the message or request itself (malformed payload, 4xx)."""


class MessagingError(RelayError):
    """Base class for message broker infrastructure errors."""


class MessagingConnectionError(MessagingError):
    """Raised when connectivity to the message broker fails."""


class MessagingSerializationError(MessagingError):
    """Raised when message serialization or deserialization fails."""


def classify(exc: BaseException) -> DeliveryError:
    """Return *exc* as a classified error.

    Already classified errors are returned unchanged; anything else is
    wrapped as retryable so that an unknown failure is redelivered rather
    than lost.
    """
    if isinstance(exc, DeliveryError):
        return exc
    error = RetryableError(
        str(exc) or type(exc).__name__,
        "UNCLASSIFIED",
        {"exception": type(exc).__name__},
    )
    error.__cause__ = exc
    return error
