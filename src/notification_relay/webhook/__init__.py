"""HTTP webhook delivery (Discord)."""

from __future__ import annotations

from .sender import DiscordWebhookSender, parse_retry_after

__all__ = [
    "DiscordWebhookSender",
    "parse_retry_after",
]
