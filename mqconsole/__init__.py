"""
mqconsole - Messaging Admin Console.

One query contract (filter, sort, paginate) and one mutation contract
(create, delete, enable/disable, purge) over Azure Service Bus, RabbitMQ
and Kafka.

Quick Start:
    from mqconsole import AdminConsole, ConnectionRegistry, ConsoleSettings

    settings = ConsoleSettings(
        kafka_instances=[{"name": "local", "bootstrap_servers": "localhost:9092"}],
    )
    console = AdminConsole(ConnectionRegistry(settings))

    page = await console.list_entities("kafka", "local", "topic", {"name_filter": "orders"})
    print(page.total, [item["name"] for item in page.items])

HTTP:
    uvicorn mqconsole.app:create_app --factory
"""

from mqconsole.config import (
    ConsoleSettings,
    KafkaInstance,
    RabbitMQInstance,
    ServiceBusInstance,
    configure,
    get_settings,
)
from mqconsole.console import AdminConsole
from mqconsole.drain import drain
from mqconsole.exceptions import (
    AlreadyExistsError,
    BackendError,
    ConfigurationError,
    ConsoleError,
    InvalidArgumentError,
    NotFoundError,
    ParentNotFoundError,
    PartialOperationError,
    UnsupportedOperationError,
)
from mqconsole.normalizer import normalize
from mqconsole.registry import ConnectionRegistry
from mqconsole.schemas import (
    BackendFamily,
    CreateParams,
    EntityKind,
    EntityStatus,
    Page,
    PurgeTarget,
    QueryDescriptor,
)

__version__ = "0.1.0"

__all__ = [
    # Facade
    "AdminConsole",
    "ConnectionRegistry",
    # Config
    "ConsoleSettings",
    "ServiceBusInstance",
    "RabbitMQInstance",
    "KafkaInstance",
    "get_settings",
    "configure",
    # Schemas
    "BackendFamily",
    "EntityKind",
    "EntityStatus",
    "PurgeTarget",
    "QueryDescriptor",
    "CreateParams",
    "Page",
    # Helpers
    "normalize",
    "drain",
    # Exceptions
    "ConsoleError",
    "InvalidArgumentError",
    "UnsupportedOperationError",
    "NotFoundError",
    "ParentNotFoundError",
    "AlreadyExistsError",
    "BackendError",
    "PartialOperationError",
    "ConfigurationError",
]
