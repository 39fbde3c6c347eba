"""Payload-to-message rendering: a pure lookup table keyed by routing key."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from typing import Any

from .delivery import EmbedField, RenderedMessage
from .envelope import is_dead_letter_routing_key

GREEN = 0x57F287
RED = 0xED4245
YELLOW = 0xFEE75C
PURPLE = 0x9B59B6
ORANGE = 0xE67E22
BLUE = 0x3498DB

Payload = Mapping[str, Any]
Renderer = Callable[[Payload], RenderedMessage]


def format_bytes(size: float) -> str:
    """Human readable binary size, e.g. ``1.5 KB``."""
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while size >= 1024 and i < len(units) - 1:
        size /= 1024
        i += 1
    return f"{round(size, 2):g} {units[i]}"


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return f"{text[: max_length - 3]}..."


def _str(payload: Payload, key: str, default: str) -> str:
    value = payload.get(key)
    if value is None or value == "":
        return default
    return str(value)


def _ci(title: str, color: int, result: str) -> Renderer:
    def render(payload: Payload) -> RenderedMessage:
        return RenderedMessage(
            title=title,
            color=color,
            url=payload.get("run_url"),
            fields=(
                EmbedField("Repository", _str(payload, "repository", "unknown"), True),
                EmbedField("Status", _str(payload, "status", "complete"), True),
                EmbedField("Result", result, True),
            ),
        )

    return render


def _pull_request(title: str, color: int) -> Renderer:
    def render(payload: Payload) -> RenderedMessage:
        return RenderedMessage(
            title=title,
            color=color,
            url=payload.get("pr_url"),
            fields=(
                EmbedField("PR", f"#{_str(payload, 'pr_number', '?')}", True),
                EmbedField(
                    "Title", truncate(_str(payload, "pr_title", "untitled"), 100), True
                ),
                EmbedField("Author", _str(payload, "author", "unknown"), True),
            ),
        )

    return render


def _download(title: str, color: int) -> Renderer:
    def render(payload: Payload) -> RenderedMessage:
        return RenderedMessage(
            title=title,
            color=color,
            fields=(
                EmbedField("Name", truncate(_str(payload, "name", "unknown"), 100)),
                EmbedField("Size", format_bytes(float(payload.get("size") or 0)), True),
                EmbedField("Category", _str(payload, "category", "unknown"), True),
            ),
        )

    return render


def _deploy(title: str, color: int, default_status: str) -> Renderer:
    def render(payload: Payload) -> RenderedMessage:
        fields = [
            EmbedField("Repository", _str(payload, "repository", "unknown"), True),
            EmbedField("Status", _str(payload, "status", default_status), True),
        ]
        if payload.get("duration"):
            fields.append(EmbedField("Duration", f"{payload['duration']}s", True))
        return RenderedMessage(title=title, color=color, fields=tuple(fields))

    return render


def _disk_space(title: str, color: int) -> Renderer:
    def render(payload: Payload) -> RenderedMessage:
        return RenderedMessage(
            title=title,
            color=color,
            fields=(
                EmbedField("Volume", _str(payload, "volume", "unknown"), True),
                EmbedField("Usage", f"{payload.get('used_percent') or 0}%", True),
                EmbedField(
                    "Free", format_bytes(float(payload.get("free_bytes") or 0)), True
                ),
            ),
        )

    return render


def _disk_space_status(payload: Payload) -> RenderedMessage:
    usage = EmbedField("Usage", f"{payload.get('used_percent') or 0}%", True)
    volume = EmbedField("Volume", _str(payload, "volume", "unknown"), True)
    previous = payload.get("previous_threshold")
    if previous:
        return RenderedMessage(
            title="Disk Space Recovery",
            color=GREEN,
            fields=(volume, usage, EmbedField("Recovered From", str(previous), True)),
        )
    volumes = payload.get("volumes")
    if isinstance(volumes, list) and volumes:
        lines = "\n".join(
            f"{v.get('volume')}: {v.get('used_percent')}% ({v.get('status')})"
            for v in volumes
            if isinstance(v, Mapping)
        )
        return RenderedMessage(
            title="Disk Space Status", color=BLUE, description=truncate(lines, 1000)
        )
    return RenderedMessage(title="Disk Space Status", color=BLUE, fields=(volume, usage))


def _polling_failure(payload: Payload) -> RenderedMessage:
    return RenderedMessage(
        title="Service Polling Failed",
        color=RED,
        fields=(
            EmbedField("Service", _str(payload, "service", "unknown"), True),
            EmbedField("Error", truncate(_str(payload, "error", "unknown error"), 200)),
        ),
    )


def _dead_letter_alert(payload: Payload) -> RenderedMessage:
    return RenderedMessage(
        title="Dead Letter Queue Alert",
        color=RED,
        timestamp=payload.get("timestamp"),
        fields=(
            EmbedField("Service", _str(payload, "service", "unknown"), True),
            EmbedField("Queue", _str(payload, "queue", "unknown"), True),
            EmbedField("Retry Count", str(payload.get("retryCount") or 0), True),
            EmbedField("Error", truncate(_str(payload, "error", "unknown error"), 200)),
        ),
    )


def _generic(routing_key: str, payload: Payload) -> RenderedMessage:
    return RenderedMessage(
        title=f"Notification: {routing_key}",
        color=BLUE,
        description=truncate(json.dumps(payload, indent=2, default=str), 1000),
    )


RENDERERS: dict[str, Renderer] = {
    "ci.success": _ci("CI Build Succeeded", GREEN, "success"),
    "ci.failure": _ci("CI Build Failed", RED, "failure"),
    "pr.opened": _pull_request("Pull Request Opened", YELLOW),
    "pr.merged": _pull_request("Pull Request Merged", PURPLE),
    "pr.closed": _pull_request("Pull Request Closed", RED),
    "downloads.complete": _download("Download Complete", GREEN),
    "downloads.removed": _download("Download Removed", ORANGE),
    "deploy.success": _deploy("Deployment Succeeded", GREEN, "complete"),
    "deploy.failure": _deploy("Deployment Failed", RED, "failed"),
    "polling.failure": _polling_failure,
    "warn.diskspace": _disk_space("Disk Space Warning", YELLOW),
    "error.diskspace": _disk_space("Disk Space Critical", ORANGE),
    "critical.diskspace": _disk_space("Disk Space Emergency", RED),
    "info.diskspace": _disk_space_status,
}


def render(routing_key: str, payload: Payload) -> RenderedMessage:
    """Map a routing key and payload to a :class:`RenderedMessage`.

    Pure: no I/O, no state. Unknown keys render the payload as JSON.
    """
    renderer = RENDERERS.get(routing_key)
    if renderer is not None:
        return renderer(payload)
    if is_dead_letter_routing_key(routing_key):
        return _dead_letter_alert(payload)
    return _generic(routing_key, payload)
