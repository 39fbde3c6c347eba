"""End-to-end tests of NotificationRelay with in-memory adapters."""

from __future__ import annotations

import json

import pytest

from notification_relay.correlation import get_correlation_id
from notification_relay.exceptions import NonRetryableError, RetryableError
from notification_relay.memory import FakeInboundDelivery, InMemoryPublisher, InMemorySender
from notification_relay.relay import InboundDelivery, NotificationRelay, Outcome
from notification_relay.retry import RetryScheduler

DEFAULT_WEBHOOK = "https://discord.com/api/webhooks/100/default-token"
CI_WEBHOOK = "https://discord.com/api/webhooks/200/ci-token"
ERRORS_WEBHOOK = "https://discord.com/api/webhooks/300/errors-token"

EXCHANGE = "notifications"
DELAY_EXCHANGE = "notifications.delay"
DLQ_EXCHANGE = "notifications.dlq"

CI_FAILURE = json.dumps({"repository": "relay", "status": "failed"}).encode()


def test_fake_delivery_satisfies_protocol() -> None:
    assert isinstance(FakeInboundDelivery(b"{}", "ci.success"), InboundDelivery)


@pytest.mark.asyncio
async def test_success_acks_once_and_publishes_nothing(
    relay: NotificationRelay, sender: InMemorySender, publisher: InMemoryPublisher
) -> None:
    delivery = FakeInboundDelivery(CI_FAILURE, "ci.failure")

    assert await relay.handle(delivery) is Outcome.PROCESSED

    assert delivery.ack_count == 1
    assert publisher.get_published() == []
    sender.assert_sent(CI_WEBHOOK, 1)
    sender.assert_sent(ERRORS_WEBHOOK, 1)


@pytest.mark.asyncio
async def test_handle_sets_correlation_id(relay: NotificationRelay) -> None:
    await relay.handle(FakeInboundDelivery(b"{}", "pr.opened"))
    correlation_id = get_correlation_id()
    assert correlation_id is not None
    assert correlation_id.startswith("notification-")


@pytest.mark.asyncio
async def test_malformed_payload_is_dead_lettered_without_retry(
    relay: NotificationRelay, sender: InMemorySender, publisher: InMemoryPublisher
) -> None:
    delivery = FakeInboundDelivery(
        b"not json", "ci.failure", headers={"x-retry-count": 7}
    )

    assert await relay.handle(delivery) is Outcome.DEAD_LETTERED

    assert delivery.ack_count == 1
    assert sender.sent_messages == []
    publisher.assert_published(DELAY_EXCHANGE, 0)
    archived = publisher.get_published(DLQ_EXCHANGE)
    assert len(archived) == 1
    assert archived[0].body == b"not json"
    assert archived[0].routing_key == "ci.failure"
    alert = publisher.get_published(EXCHANGE)[0].json()
    assert alert["retryCount"] == 0
    assert alert["originalMessage"] == "not json"
    assert alert["error"] == "Invalid JSON in message payload"


@pytest.mark.asyncio
async def test_retryable_failure_is_rescheduled(
    relay: NotificationRelay, sender: InMemorySender, publisher: InMemoryPublisher
) -> None:
    sender.failures[ERRORS_WEBHOOK] = RetryableError(
        "Discord server error: 503", "SERVER_ERROR", {"status": 503}
    )
    delivery = FakeInboundDelivery(CI_FAILURE, "ci.failure")

    assert await relay.handle(delivery) is Outcome.RESCHEDULED

    assert delivery.ack_count == 1
    sender.assert_sent(CI_WEBHOOK, 1)
    sender.assert_sent(ERRORS_WEBHOOK, 1)
    (retry,) = publisher.get_published(DELAY_EXCHANGE)
    assert retry.routing_key == "ci.failure"
    assert retry.body == CI_FAILURE
    assert retry.headers["x-retry-count"] == 1
    assert retry.headers["x-delay"] == 1000
    assert retry.headers["x-last-error"] == "Discord server error: 503"
    assert retry.headers["x-first-failure-timestamp"]
    publisher.assert_published(DLQ_EXCHANGE, 0)


@pytest.mark.asyncio
async def test_retry_chain_keeps_first_failure_timestamp(
    relay: NotificationRelay, sender: InMemorySender, publisher: InMemoryPublisher
) -> None:
    sender.failures[CI_WEBHOOK] = RetryableError("timeout", "TIMEOUT")
    first_seen = "2026-01-01T00:00:00+00:00"
    delivery = FakeInboundDelivery(
        CI_FAILURE,
        "ci.failure",
        headers={
            "x-retry-count": 3,
            "x-first-failure-timestamp": first_seen,
            "x-last-error": "timeout",
            "x-delay": 4000,
        },
    )

    assert await relay.handle(delivery) is Outcome.RESCHEDULED

    (retry,) = publisher.get_published(DELAY_EXCHANGE)
    assert retry.headers["x-retry-count"] == 4
    assert retry.headers["x-delay"] == 8000
    assert retry.headers["x-first-failure-timestamp"] == first_seen


@pytest.mark.asyncio
async def test_exhausted_retries_escalate(
    relay: NotificationRelay, sender: InMemorySender, publisher: InMemoryPublisher
) -> None:
    sender.failures[CI_WEBHOOK] = RetryableError("Rate limited by Discord", "RATE_LIMITED")
    delivery = FakeInboundDelivery(
        CI_FAILURE, "ci.failure", headers={"x-retry-count": 20}
    )

    assert await relay.handle(delivery) is Outcome.DEAD_LETTERED

    assert delivery.ack_count == 1
    publisher.assert_published(DELAY_EXCHANGE, 0)
    publisher.assert_published(DLQ_EXCHANGE, 1)
    (alert,) = publisher.get_published(EXCHANGE)
    assert alert.routing_key == "notifications.dlq.notification-service"
    assert alert.json()["retryCount"] == 21


@pytest.mark.asyncio
async def test_non_retryable_failure_is_dead_lettered_immediately(
    relay: NotificationRelay, sender: InMemorySender, publisher: InMemoryPublisher
) -> None:
    sender.failures[ERRORS_WEBHOOK] = NonRetryableError(
        "Discord client error: 404", "CLIENT_ERROR", {"status": 404}
    )
    delivery = FakeInboundDelivery(CI_FAILURE, "ci.failure", headers={"x-retry-count": 2})

    assert await relay.handle(delivery) is Outcome.DEAD_LETTERED

    assert delivery.ack_count == 1
    publisher.assert_published(DELAY_EXCHANGE, 0)
    publisher.assert_published(DLQ_EXCHANGE, 1)
    alert = publisher.get_published(EXCHANGE)[0].json()
    assert alert["retryCount"] == 0
    assert alert["error"] == "Discord client error: 404"


@pytest.mark.asyncio
async def test_unexpected_exception_is_retried(
    relay: NotificationRelay, sender: InMemorySender, publisher: InMemoryPublisher
) -> None:
    sender.failures[CI_WEBHOOK] = RuntimeError("socket closed")
    delivery = FakeInboundDelivery(b'{"repository": "relay"}', "ci.success")

    assert await relay.handle(delivery) is Outcome.RESCHEDULED

    assert delivery.ack_count == 1
    (retry,) = publisher.get_published(DELAY_EXCHANGE)
    assert retry.headers["x-last-error"] == "socket closed"


@pytest.mark.asyncio
async def test_failing_alert_does_not_alert_again(
    relay: NotificationRelay, sender: InMemorySender, publisher: InMemoryPublisher
) -> None:
    sender.failures[DEFAULT_WEBHOOK] = NonRetryableError(
        "Discord client error: 400", "CLIENT_ERROR"
    )
    alert_body = json.dumps(
        {"service": "notification-service", "queue": "notifications", "retryCount": 21}
    ).encode()
    delivery = FakeInboundDelivery(alert_body, "notifications.dlq.notification-service")

    assert await relay.handle(delivery) is Outcome.DEAD_LETTERED

    publisher.assert_published(DLQ_EXCHANGE, 1)
    publisher.assert_published(EXCHANGE, 0)


@pytest.mark.asyncio
async def test_ack_happens_before_disposition_publish(
    relay: NotificationRelay, sender: InMemorySender
) -> None:
    failing = InMemoryPublisher(fail_on={DELAY_EXCHANGE})
    relay.scheduler = RetryScheduler(failing, DELAY_EXCHANGE)
    sender.failures[CI_WEBHOOK] = RetryableError("timeout", "TIMEOUT")
    delivery = FakeInboundDelivery(CI_FAILURE, "ci.success")

    with pytest.raises(ConnectionError):
        await relay.handle(delivery)

    assert delivery.ack_count == 1
