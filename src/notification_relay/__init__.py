"""Reliable relay of queued event notifications to Discord webhooks."""

from __future__ import annotations

from .dead_letter import DeadLetterEscalator, DeadLetterRecord, build_dead_letter_record
from .delivery import DeliveryRecord, DeliveryStatus, EmbedField, RenderedMessage
from .envelope import Envelope, RetryHistory
from .exceptions import (
    DeliveryError,
    MessagingConnectionError,
    MessagingError,
    MessagingSerializationError,
    NonRetryableError,
    RelayError,
    RetryableError,
    classify,
)
from .fanout import FanoutDeliveryCoordinator
from .relay import InboundDelivery, NotificationRelay, Outcome
from .rendering import render
from .retry import Escalate, Reschedule, RetryDecision, RetryPolicy, RetryScheduler
from .routing import DestinationRouter

__all__ = [
    "DeadLetterEscalator",
    "DeadLetterRecord",
    "DeliveryError",
    "DeliveryRecord",
    "DeliveryStatus",
    "DestinationRouter",
    "EmbedField",
    "Envelope",
    "Escalate",
    "FanoutDeliveryCoordinator",
    "InboundDelivery",
    "MessagingConnectionError",
    "MessagingError",
    "MessagingSerializationError",
    "NonRetryableError",
    "NotificationRelay",
    "Outcome",
    "RelayError",
    "RenderedMessage",
    "Reschedule",
    "RetryDecision",
    "RetryHistory",
    "RetryPolicy",
    "RetryScheduler",
    "RetryableError",
    "build_dead_letter_record",
    "classify",
    "render",
]
