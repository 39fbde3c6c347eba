"""Tests for DiscordWebhookSender against a mocked HTTP transport."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable

import httpx
import pytest

from notification_relay.delivery import DeliveryStatus, EmbedField, RenderedMessage
from notification_relay.exceptions import NonRetryableError, RetryableError
from notification_relay.webhook import DiscordWebhookSender
from notification_relay.webhook.sender import parse_retry_after

WEBHOOK = "https://discord.com/api/webhooks/123/secret-token"
MESSAGE = RenderedMessage(
    title="CI Build Failed",
    color=0xED4245,
    fields=(EmbedField("Repository", "relay", True),),
)

Handler = Callable[[httpx.Request], httpx.Response]


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _sender(handler: Handler, sleep: SleepRecorder | None = None) -> DiscordWebhookSender:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DiscordWebhookSender(client, sleep=sleep or SleepRecorder())


def _counting(*responses: httpx.Response) -> tuple[Handler, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        template = responses[min(len(seen), len(responses)) - 1]
        return httpx.Response(
            template.status_code, headers=template.headers, content=template.content
        )

    return handler, seen


@pytest.mark.parametrize(
    ("value", "expected"),
    [("10", 10000), ("1.5", 1500), (None, 5000), ("soon", 5000), ("-1", 5000)],
)
def test_parse_retry_after(value: str | None, expected: int) -> None:
    assert parse_retry_after(value) == expected


@pytest.mark.asyncio
async def test_success_posts_embed() -> None:
    handler, seen = _counting(httpx.Response(204))
    record = await _sender(handler).deliver(WEBHOOK, MESSAGE)

    assert record.status is DeliveryStatus.SENT
    assert record.attempts == 1
    assert record.status_code == 204
    assert "secret-token" not in record.destination
    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert str(seen[0].url) == WEBHOOK
    assert json.loads(seen[0].content) == {
        "embeds": [
            {
                "title": "CI Build Failed",
                "color": 0xED4245,
                "fields": [{"name": "Repository", "value": "relay", "inline": True}],
            }
        ]
    }


@pytest.mark.asyncio
async def test_rate_limit_fails_immediately_with_retry_after() -> None:
    handler, seen = _counting(httpx.Response(429, headers={"retry-after": "10"}))
    sleep = SleepRecorder()

    with pytest.raises(RetryableError) as exc_info:
        await _sender(handler, sleep).deliver(WEBHOOK, MESSAGE)

    assert exc_info.value.code == "RATE_LIMITED"
    assert exc_info.value.context == {"retryAfterMs": 10000}
    assert len(seen) == 1
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_rate_limit_without_header_uses_default() -> None:
    handler, _ = _counting(httpx.Response(429))
    with pytest.raises(RetryableError) as exc_info:
        await _sender(handler).deliver(WEBHOOK, MESSAGE)
    assert exc_info.value.context["retryAfterMs"] == 5000


@pytest.mark.asyncio
async def test_server_error_retries_with_linear_backoff() -> None:
    handler, seen = _counting(httpx.Response(502))
    sleep = SleepRecorder()

    with pytest.raises(RetryableError) as exc_info:
        await _sender(handler, sleep).deliver(WEBHOOK, MESSAGE)

    assert exc_info.value.code == "SERVER_ERROR"
    assert exc_info.value.context == {"status": 502}
    assert len(seen) == 3
    assert sleep.calls == [1.0, 2.0]


@pytest.mark.asyncio
async def test_server_error_then_success() -> None:
    handler, seen = _counting(httpx.Response(500), httpx.Response(200))
    sleep = SleepRecorder()

    record = await _sender(handler, sleep).deliver(WEBHOOK, MESSAGE)

    assert record.status is DeliveryStatus.SENT
    assert record.attempts == 2
    assert len(seen) == 2
    assert sleep.calls == [1.0]


@pytest.mark.asyncio
async def test_client_error_is_not_retried() -> None:
    handler, seen = _counting(httpx.Response(400, text="Invalid Form Body"))

    with pytest.raises(NonRetryableError) as exc_info:
        await _sender(handler).deliver(WEBHOOK, MESSAGE)

    assert exc_info.value.code == "CLIENT_ERROR"
    assert exc_info.value.context == {"status": 400, "body": "Invalid Form Body"}
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_timeout_exhausts_attempts() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ReadTimeout("timed out", request=request)

    sleep = SleepRecorder()
    with pytest.raises(RetryableError) as exc_info:
        await _sender(handler, sleep).deliver(WEBHOOK, MESSAGE)

    assert exc_info.value.code == "TIMEOUT"
    assert calls == 3
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_network_error_exhausts_attempts() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RetryableError) as exc_info:
        await _sender(handler).deliver(WEBHOOK, MESSAGE)

    assert exc_info.value.code == "NETWORK_ERROR"
    assert calls == 3


@pytest.mark.asyncio
async def test_timeout_then_success() -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) == 1:
            raise httpx.ConnectTimeout("timed out", request=request)
        return httpx.Response(200)

    record = await _sender(handler).deliver(WEBHOOK, MESSAGE)
    assert record.attempts == 2


@pytest.mark.asyncio
async def test_logs_never_contain_webhook_token(caplog: pytest.LogCaptureFixture) -> None:
    handler, _ = _counting(httpx.Response(503))
    caplog.set_level(logging.DEBUG, logger="notification_relay")

    with pytest.raises(RetryableError):
        await _sender(handler).deliver(WEBHOOK, MESSAGE)

    relay_records = [r for r in caplog.records if r.name.startswith("notification_relay")]
    assert relay_records
    for record in relay_records:
        assert "secret-token" not in record.getMessage()
        assert "secret-token" not in str(vars(record))


def test_max_attempts_must_be_positive() -> None:
    with pytest.raises(ValueError):
        DiscordWebhookSender(max_attempts=0)


@pytest.mark.asyncio
async def test_aclose_leaves_injected_client_open() -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    await DiscordWebhookSender(client).aclose()
    assert not client.is_closed
    await client.aclose()


@pytest.mark.asyncio
async def test_aclose_closes_owned_client() -> None:
    sender = DiscordWebhookSender()
    await sender.aclose()
    assert sender._client.is_closed
