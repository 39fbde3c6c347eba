"""Pytest fixtures for notification-relay tests."""

from __future__ import annotations

import pytest

from notification_relay.dead_letter import DeadLetterEscalator
from notification_relay.fanout import FanoutDeliveryCoordinator
from notification_relay.memory import InMemoryPublisher, InMemorySender
from notification_relay.relay import NotificationRelay
from notification_relay.retry import RetryPolicy, RetryScheduler
from notification_relay.routing import DestinationRouter

DEFAULT_WEBHOOK = "https://discord.com/api/webhooks/100/default-token"
CI_WEBHOOK = "https://discord.com/api/webhooks/200/ci-token"
ERRORS_WEBHOOK = "https://discord.com/api/webhooks/300/errors-token"

EXCHANGE = "notifications"
DELAY_EXCHANGE = "notifications.delay"
DLQ_EXCHANGE = "notifications.dlq"


@pytest.fixture
def router() -> DestinationRouter:
    return DestinationRouter(
        default_webhook=DEFAULT_WEBHOOK,
        webhooks={"ci": CI_WEBHOOK, "errors": ERRORS_WEBHOOK},
        routes={"ci": "ci"},
        error_routes=["ci.failure", "deploy.failure", "dlq", "polling.failure"],
    )


@pytest.fixture
def publisher() -> InMemoryPublisher:
    return InMemoryPublisher()


@pytest.fixture
def sender() -> InMemorySender:
    return InMemorySender()


@pytest.fixture
def escalator(publisher: InMemoryPublisher) -> DeadLetterEscalator:
    return DeadLetterEscalator(
        publisher,
        exchange=EXCHANGE,
        dlq_exchange=DLQ_EXCHANGE,
        service="notification-service",
        queue="notifications",
    )


@pytest.fixture
def relay(
    sender: InMemorySender,
    router: DestinationRouter,
    publisher: InMemoryPublisher,
    escalator: DeadLetterEscalator,
) -> NotificationRelay:
    return NotificationRelay(
        FanoutDeliveryCoordinator(sender, router),
        RetryPolicy(),
        RetryScheduler(publisher, DELAY_EXCHANGE),
        escalator,
    )
