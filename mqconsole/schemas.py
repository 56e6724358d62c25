"""
Request and result schemas shared by every backend.

Entities themselves stay plain dicts (backend-native fields, snake_case);
only the envelope around them is modelled here.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field as PydanticField


class _LenientEnum(str, Enum):
    """String enum that also accepts its values case-insensitively."""

    @classmethod
    def _missing_(cls, value: object) -> Any:
        if isinstance(value, str):
            folded = value.replace("_", "").replace("-", "").lower()
            for member in cls:
                if member.value.replace("_", "").lower() == folded:
                    return member
        return None


class BackendFamily(_LenientEnum):
    """Messaging backend families managed by the console."""

    SERVICEBUS = "servicebus"
    RABBITMQ = "rabbitmq"
    KAFKA = "kafka"


class EntityKind(_LenientEnum):
    """Administrable entity kinds across all families."""

    QUEUE = "queue"
    TOPIC = "topic"
    SUBSCRIPTION = "subscription"
    EXCHANGE = "exchange"
    CONSUMER_GROUP = "consumer_group"


class EntityStatus(_LenientEnum):
    """Two-valued entity status, where the backend supports one."""

    ACTIVE = "Active"
    DISABLED = "Disabled"


class PurgeTarget(_LenientEnum):
    """Which message store of a container to purge."""

    ACTIVE = "active"
    DEAD_LETTER = "deadLetter"


#: Kinds whose identifier needs a parent (subscription -> topic).
HIERARCHICAL_KINDS = frozenset({EntityKind.SUBSCRIPTION})


class QueryDescriptor(BaseModel):
    """
    Uniform listing query.

    Attributes:
        skip: Number of filtered items to skip
        top: Page size
        name_filter: Case-insensitive substring on the entity name ("" = all)
        subscription_name_filter: Same, applied to the subscription name
        order_by: Field to sort by (retrieval order when unset)
        order: Sort direction
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    skip: int = PydanticField(default=0, ge=0)
    top: int = PydanticField(default=25, ge=1)
    name_filter: str = ""
    subscription_name_filter: str = ""
    order_by: str | None = None
    order: Literal["asc", "desc"] = "asc"


class CreateParams(BaseModel):
    """Parameters for creating an entity."""

    model_config = ConfigDict(frozen=True)

    name: str = PydanticField(min_length=1)
    parent_name: str | None = None
    partitions: int = PydanticField(default=1, ge=1)
    replication_factor: int = PydanticField(default=1, ge=1)


class Page(BaseModel):
    """A filtered, sorted and paginated listing."""

    items: list[dict[str, Any]]
    total: int


class InstanceInfo(BaseModel):
    name: str


class CreatedResult(BaseModel):
    created: bool = True


class DeletedResult(BaseModel):
    deleted: bool = True


class UpdatedResult(BaseModel):
    updated: bool = True


class PurgeResult(BaseModel):
    purged_count: int
