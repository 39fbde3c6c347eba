"""Wire codecs — payload decoding and retry-history headers."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from .envelope import Envelope, RetryHistory
from .exceptions import MessagingSerializationError, NonRetryableError

logger = logging.getLogger(__name__)

HEADER_RETRY_COUNT = "x-retry-count"
HEADER_FIRST_FAILURE = "x-first-failure-timestamp"
HEADER_LAST_ERROR = "x-last-error"
HEADER_DELAY = "x-delay"


def _json_serializer(obj: Any) -> Any:
    """Serialize datetime and other non-JSON types."""
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def encode_json(data: Mapping[str, Any]) -> bytes:
    """Encode a mapping to UTF-8 JSON bytes."""
    try:
        return json.dumps(data, default=_json_serializer).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise MessagingSerializationError(str(e)) from e


def decode_payload(raw: bytes) -> dict[str, object]:
    """Decode raw message bytes to a JSON object.

    Anything that is not a UTF-8 JSON object is a content defect and raises
    :class:`NonRetryableError` with code ``INVALID_JSON``.
    """
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise NonRetryableError(
            "Invalid JSON in message payload", "INVALID_JSON", {"reason": str(e)}
        ) from e
    if not isinstance(data, dict):
        raise NonRetryableError(
            "Message payload must be a JSON object",
            "INVALID_JSON",
            {"reason": f"got {type(data).__name__}"},
        )
    return data


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, str)):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        return value
    return None


def _coerce_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = _coerce_str(value)
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def history_from_headers(headers: Mapping[str, Any] | None) -> RetryHistory | None:
    """Read retry metadata from transport headers.

    Returns None when no retry header is present. Malformed values are
    ignored field by field and logged.
    """
    if not headers:
        return None
    if not any(
        key in headers
        for key in (HEADER_RETRY_COUNT, HEADER_FIRST_FAILURE, HEADER_LAST_ERROR)
    ):
        return None

    retry_count = _coerce_int(headers.get(HEADER_RETRY_COUNT))
    if retry_count is None or retry_count < 0:
        if HEADER_RETRY_COUNT in headers:
            logger.warning(
                "Ignoring malformed retry header",
                extra={"header": HEADER_RETRY_COUNT},
            )
        retry_count = 0
    delay_ms = _coerce_int(headers.get(HEADER_DELAY))
    return RetryHistory(
        retry_count=retry_count,
        first_failure_timestamp=_coerce_timestamp(headers.get(HEADER_FIRST_FAILURE)),
        last_error=_coerce_str(headers.get(HEADER_LAST_ERROR)),
        delay_ms=delay_ms if delay_ms is not None and delay_ms >= 0 else 0,
    )


def history_to_headers(history: RetryHistory) -> dict[str, Any]:
    """Write retry metadata as transport headers (``x-delay`` drives the delayed exchange)."""
    first_failure = history.first_failure_timestamp or datetime.now(timezone.utc)
    return {
        HEADER_RETRY_COUNT: history.retry_count,
        HEADER_FIRST_FAILURE: first_failure.isoformat(),
        HEADER_LAST_ERROR: history.last_error or "",
        HEADER_DELAY: history.delay_ms,
    }


def parse_envelope(
    body: bytes,
    routing_key: str,
    headers: Mapping[str, Any] | None = None,
) -> Envelope:
    """Build an :class:`Envelope` from an inbound delivery; raises on bad JSON."""
    return Envelope(
        routing_key=routing_key,
        payload=decode_payload(body),
        body=body,
        retry_history=history_from_headers(headers),
    )
