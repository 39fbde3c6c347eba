"""RabbitMQ transport adapter (optional extra: notification-relay[rabbitmq])."""

from __future__ import annotations

from .connection import RabbitMQConnectionManager
from .consumer import AmqpInboundDelivery, RabbitMQConsumer
from .publisher import RabbitMQPublisher

__all__ = [
    "AmqpInboundDelivery",
    "RabbitMQConnectionManager",
    "RabbitMQConsumer",
    "RabbitMQPublisher",
]
