"""
Kafka admin adapter.

Uses confluent_kafka.admin.AdminClient (librdkafka). Its calls are
blocking or return concurrent futures, so they are resolved in the default
executor to keep the event loop free.

Kafka has no purge primitive and no entity status: topics keep messages
until retention expires, and consumer groups hold offsets, not messages.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator
from concurrent.futures import Future
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

from confluent_kafka import KafkaError, KafkaException
from confluent_kafka.admin import AdminClient, NewTopic

from mqconsole.adapters.base import AdminAdapter
from mqconsole.config import KafkaInstance
from mqconsole.exceptions import (
    AlreadyExistsError,
    BackendError,
    ConsoleError,
    NotFoundError,
)
from mqconsole.schemas import (
    BackendFamily,
    CreateParams,
    EntityKind,
    EntityStatus,
    PurgeTarget,
    QueryDescriptor,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

_NOT_FOUND_CODES = frozenset({
    KafkaError.UNKNOWN_TOPIC_OR_PART,
    KafkaError.GROUP_ID_NOT_FOUND,
})


@dataclass
class KafkaHandle:
    """AdminClient for one cluster."""

    admin: AdminClient
    timeout: float = 10.0

    async def close(self) -> None:
        # AdminClient has no close(); librdkafka tears it down when collected
        logger.debug("Releasing Kafka AdminClient")


async def open_kafka_handle(instance: KafkaInstance) -> KafkaHandle:
    return KafkaHandle(
        admin=AdminClient(instance.client_config()),
        timeout=instance.request_timeout_s,
    )


def _error_code(exc: KafkaException) -> int | None:
    error = exc.args[0] if exc.args else None
    return error.code() if isinstance(error, KafkaError) else None


@contextmanager
def _native_errors(action: str, resource: str, identifier: str) -> Iterator[None]:
    """Translate KafkaException error codes into console exceptions."""
    try:
        yield
    except ConsoleError:
        raise
    except KafkaException as exc:
        code = _error_code(exc)
        if code == KafkaError.TOPIC_ALREADY_EXISTS:
            raise AlreadyExistsError(
                f"{resource.capitalize()} '{identifier}' already exists",
                details={"resource": resource, "identifier": identifier, "cause": str(exc)},
            ) from exc
        if code in _NOT_FOUND_CODES:
            raise NotFoundError.for_resource(resource, identifier, cause=str(exc)) from exc
        raise BackendError.wrap(exc, f"Failed to {action} {resource} '{identifier}'") from exc


def _state_name(state: Any) -> str:
    if state is None:
        return "UNKNOWN"
    return str(getattr(state, "name", state))


class KafkaAdapter(AdminAdapter):
    """
    Topic and consumer group management for Kafka.

    Example:
        adapter = KafkaAdapter()
        handle = await open_kafka_handle(instance)
        await adapter.create_entity(
            handle, EntityKind.TOPIC, CreateParams(name="events", partitions=3),
        )
        topics = await adapter.list_entities(handle, EntityKind.TOPIC, QueryDescriptor())
    """

    family = BackendFamily.KAFKA
    supported_kinds = frozenset({EntityKind.TOPIC, EntityKind.CONSUMER_GROUP})
    unsupported_operations = frozenset({
        ("create", EntityKind.CONSUMER_GROUP),
        ("set_status", None),
        ("purge", EntityKind.TOPIC),
    })

    async def _run(self, func: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    async def _result(self, future: Future) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, future.result)

    # ─── Listing ─────────────────────────────────────────────────

    async def list_entities(
        self,
        handle: KafkaHandle,
        kind: EntityKind,
        query: QueryDescriptor,
    ) -> list[dict[str, Any]]:
        self.check_kind(kind)
        if kind is EntityKind.TOPIC:
            with _native_errors("list", "topic", "*"):
                return await self._list_topics(handle)
        with _native_errors("list", "consumer group", "*"):
            return await self._list_consumer_groups(handle)

    async def _list_topics(self, handle: KafkaHandle) -> list[dict[str, Any]]:
        metadata = await self._run(lambda: handle.admin.list_topics(timeout=handle.timeout))

        items = []
        for name, topic in metadata.topics.items():
            if name.startswith("__"):
                continue

            partitions = list(topic.partitions.values())
            replication_factor = len(partitions[0].replicas) if partitions else 0
            items.append({
                "name": name,
                "partitions": len(partitions),
                "replication_factor": replication_factor,
            })
        return items

    async def _list_consumer_groups(self, handle: KafkaHandle) -> list[dict[str, Any]]:
        listing = await self._result(
            handle.admin.list_consumer_groups(request_timeout=handle.timeout)
        )
        for error in getattr(listing, "errors", None) or []:
            logger.warning("Consumer group listing reported an error: %s", error)

        groups = list(listing.valid)
        if not groups:
            return []

        futures = handle.admin.describe_consumer_groups(
            [group.group_id for group in groups],
            request_timeout=handle.timeout,
        )

        items = []
        for group in groups:
            try:
                description = await self._result(futures[group.group_id])
            except KafkaException as exc:
                if _error_code(exc) != KafkaError.GROUP_ID_NOT_FOUND:
                    raise
                # deleted between the listing and the describe
                logger.warning("Consumer group %s vanished before it was described", group.group_id)
                continue
            items.append({
                "name": group.group_id,
                "group_id": group.group_id,
                "state": _state_name(description.state),
                "members": len(description.members or []),
                "is_simple_consumer_group": group.is_simple_consumer_group,
            })
        return items

    # ─── Mutations ───────────────────────────────────────────────

    async def create_entity(
        self,
        handle: KafkaHandle,
        kind: EntityKind,
        params: CreateParams,
    ) -> None:
        self.check_operation("create", kind)

        topic = NewTopic(
            params.name,
            num_partitions=params.partitions,
            replication_factor=params.replication_factor,
        )
        with _native_errors("create", "topic", params.name):
            futures = handle.admin.create_topics([topic], request_timeout=handle.timeout)
            await self._result(futures[params.name])

        logger.info(
            "Created topic: %s (partitions=%d, replication_factor=%d)",
            params.name, params.partitions, params.replication_factor,
        )

    async def delete_entity(
        self,
        handle: KafkaHandle,
        kind: EntityKind,
        identifier: str,
        parent_name: str | None = None,
    ) -> None:
        self.check_kind(kind)

        if kind is EntityKind.TOPIC:
            with _native_errors("delete", "topic", identifier):
                futures = handle.admin.delete_topics([identifier], operation_timeout=handle.timeout)
                await self._result(futures[identifier])
        else:
            with _native_errors("delete", "consumer group", identifier):
                futures = handle.admin.delete_consumer_groups(
                    [identifier], request_timeout=handle.timeout,
                )
                await self._result(futures[identifier])

        logger.info("Deleted %s: %s", kind.value, identifier)

    async def set_status(
        self,
        handle: KafkaHandle,
        kind: EntityKind,
        identifier: str,
        status: EntityStatus,
        parent_name: str | None = None,
    ) -> None:
        self.check_operation("set_status", kind)

    async def purge(
        self,
        handle: KafkaHandle,
        kind: EntityKind,
        identifier: str,
        target: PurgeTarget,
        parent_name: str | None = None,
    ) -> int:
        self.check_operation("purge", kind, target)
        # groups hold offsets, not messages
        return 0
