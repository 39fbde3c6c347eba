"""Ports (Protocols) the relay depends on; adapters live beside them."""

from __future__ import annotations

from .messaging import IMessagePublisher
from .sender import IMessageSender

__all__ = [
    "IMessagePublisher",
    "IMessageSender",
]
