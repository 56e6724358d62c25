"""
Backend admin adapters.

One AdminAdapter implementation per backend family:

    ServiceBusAdapter  - Azure Service Bus (queues, topics, subscriptions)
    RabbitMQAdapter    - RabbitMQ (queues, exchanges)
    KafkaAdapter       - Kafka (topics, consumer groups)
"""

from __future__ import annotations

from mqconsole.adapters.base import AdminAdapter, ClientHandle, parse_status, parse_target
from mqconsole.adapters.kafka import KafkaAdapter, KafkaHandle
from mqconsole.adapters.rabbitmq import RabbitMQAdapter, RabbitMQHandle
from mqconsole.adapters.servicebus import ServiceBusAdapter, ServiceBusHandle
from mqconsole.schemas import BackendFamily


def default_adapters(
    drain_batch_size: int = 100,
    drain_max_wait_seconds: float = 2.0,
) -> dict[BackendFamily, AdminAdapter]:
    """One adapter per family, with the drain parameters applied to Service Bus."""
    return {
        BackendFamily.SERVICEBUS: ServiceBusAdapter(
            batch_size=drain_batch_size,
            max_wait_time=drain_max_wait_seconds,
        ),
        BackendFamily.RABBITMQ: RabbitMQAdapter(),
        BackendFamily.KAFKA: KafkaAdapter(),
    }


__all__ = [
    "AdminAdapter",
    "ClientHandle",
    "parse_status",
    "parse_target",
    "default_adapters",
    "ServiceBusAdapter",
    "ServiceBusHandle",
    "RabbitMQAdapter",
    "RabbitMQHandle",
    "KafkaAdapter",
    "KafkaHandle",
]
