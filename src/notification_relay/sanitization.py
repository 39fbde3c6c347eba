"""Secret redaction for destinations and log metadata."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit

_DEFAULT_SENSITIVE_FIELDS: frozenset[str] = frozenset(
    {
        "password",
        "secret",
        "token",
        "authorization",
        "api_key",
        "webhook",
        "webhook_url",
        "url",
    }
)


def redact_webhook_url(url: str) -> str:
    """Return a stable, credential-free prefix of a webhook URL.

    Discord webhook URLs embed the token in the path, so only the origin is kept.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return "[invalid-url]"
    if not parts.scheme or not parts.netloc:
        return "[invalid-url]"
    return f"{parts.scheme}://{parts.netloc}/webhooks/***/***/"


class MetadataSanitizer:
    """Redacts credentials from structured log metadata.

    Values under sensitive keys that look like URLs are reduced to their
    redacted prefix; other sensitive values become ``***``.
    """

    def __init__(self, *, sensitive_fields: set[str] | None = None) -> None:
        sensitive = set(sensitive_fields or _DEFAULT_SENSITIVE_FIELDS)
        self._sensitive_fields = {f.lower() for f in sensitive}

    def sanitize(self, metadata: dict[str, Any]) -> dict[str, Any]:
        """Return a sanitized copy of metadata safe for logging."""
        return {str(k): self._sanitize_value(v, str(k).lower()) for k, v in metadata.items()}

    def _sanitize_value(self, value: Any, field_name: str) -> Any:
        if isinstance(value, dict):
            return self.sanitize(value)
        if isinstance(value, list):
            return [self._sanitize_value(item, field_name) for item in value]
        if field_name not in self._sensitive_fields:
            return value
        if isinstance(value, str) and value.startswith(("http://", "https://")):
            return redact_webhook_url(value)
        return "***"


default_sanitizer = MetadataSanitizer()
