"""
Azure Service Bus admin adapter.

Listings come from the administration client's paged iterators, which are
exhausted and merged with the matching runtime-properties iterators so every
item carries its message counts. There is no purge RPC: purges drain the
container through a receive-and-delete receiver.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.servicebus import ServiceBusReceiveMode, ServiceBusSubQueue
from azure.servicebus.aio import ServiceBusClient
from azure.servicebus.aio.management import ServiceBusAdministrationClient
from azure.servicebus.management import EntityStatus as NativeEntityStatus

from mqconsole.adapters.base import AdminAdapter
from mqconsole.config import ServiceBusInstance
from mqconsole.drain import DEFAULT_BATCH_SIZE, DEFAULT_MAX_WAIT_SECONDS, drain
from mqconsole.exceptions import (
    AlreadyExistsError,
    BackendError,
    ConsoleError,
    InvalidArgumentError,
    NotFoundError,
    ParentNotFoundError,
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


@dataclass
class ServiceBusHandle:
    """Administration client plus data-plane client for one namespace."""

    admin: ServiceBusAdministrationClient
    client: ServiceBusClient

    async def close(self) -> None:
        try:
            await self.admin.close()
        finally:
            await self.client.close()


async def open_servicebus_handle(instance: ServiceBusInstance) -> ServiceBusHandle:
    """Build clients from the namespace connection string (connects lazily)."""
    return ServiceBusHandle(
        admin=ServiceBusAdministrationClient.from_connection_string(instance.connection_string),
        client=ServiceBusClient.from_connection_string(instance.connection_string),
    )


@contextmanager
def _native_errors(action: str, resource: str, identifier: str) -> Iterator[None]:
    """Translate azure-core exceptions into console exceptions."""
    try:
        yield
    except ConsoleError:
        raise
    except ResourceExistsError as exc:
        raise AlreadyExistsError(
            f"{resource.capitalize()} '{identifier}' already exists",
            details={"resource": resource, "identifier": identifier, "cause": str(exc)},
        ) from exc
    except ResourceNotFoundError as exc:
        raise NotFoundError.for_resource(resource, identifier, cause=str(exc)) from exc
    except AzureError as exc:
        raise BackendError.wrap(exc, f"Failed to {action} {resource} '{identifier}'") from exc


def _status(value: Any) -> str | None:
    if value is None:
        return None
    return str(getattr(value, "value", value))


def _message_counts(runtime: Any) -> dict[str, Any]:
    if runtime is None:
        return {
            "active_message_count": None,
            "dead_letter_message_count": None,
            "scheduled_message_count": None,
            "transfer_message_count": None,
            "transfer_dead_letter_message_count": None,
            "total_message_count": None,
        }
    return {
        "active_message_count": runtime.active_message_count,
        "dead_letter_message_count": runtime.dead_letter_message_count,
        "scheduled_message_count": runtime.scheduled_message_count,
        "transfer_message_count": runtime.transfer_message_count,
        "transfer_dead_letter_message_count": runtime.transfer_dead_letter_message_count,
        "total_message_count": runtime.total_message_count,
    }


class ServiceBusAdapter(AdminAdapter):
    """
    Queue, topic and subscription management for Azure Service Bus.

    Example:
        adapter = ServiceBusAdapter()
        handle = await open_servicebus_handle(instance)
        queues = await adapter.list_entities(handle, EntityKind.QUEUE, QueryDescriptor())
        drained = await adapter.purge(handle, EntityKind.QUEUE, "orders", PurgeTarget.DEAD_LETTER)
    """

    family = BackendFamily.SERVICEBUS
    supported_kinds = frozenset({EntityKind.QUEUE, EntityKind.TOPIC, EntityKind.SUBSCRIPTION})
    unsupported_operations = frozenset({("purge", EntityKind.TOPIC)})

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_wait_time: float = DEFAULT_MAX_WAIT_SECONDS,
    ):
        """
        Args:
            batch_size: Messages per receive call while draining
            max_wait_time: Seconds a receive waits before the container counts as empty
        """
        self._batch_size = batch_size
        self._max_wait_time = max_wait_time

    def filter_fields(self, kind: EntityKind) -> tuple[str, str | None]:
        if kind is EntityKind.SUBSCRIPTION:
            return "topic_name", "subscription_name"
        return "name", None

    # ─── Listing ─────────────────────────────────────────────────

    async def list_entities(
        self,
        handle: ServiceBusHandle,
        kind: EntityKind,
        query: QueryDescriptor,
    ) -> list[dict[str, Any]]:
        self.check_kind(kind)
        with _native_errors("list", kind.value, "*"):
            if kind is EntityKind.QUEUE:
                return await self._list_queues(handle.admin)
            if kind is EntityKind.TOPIC:
                return await self._list_topics(handle.admin)
            return await self._list_subscriptions(handle.admin)

    async def _list_queues(self, admin: ServiceBusAdministrationClient) -> list[dict[str, Any]]:
        runtime = {}
        async for props in admin.list_queues_runtime_properties():
            runtime[props.name] = props

        items = []
        async for queue in admin.list_queues():
            queue_runtime = runtime.get(queue.name)
            items.append({
                "name": queue.name,
                "status": _status(queue.status),
                **_message_counts(queue_runtime),
                "size_in_bytes": queue_runtime.size_in_bytes if queue_runtime else None,
            })
        return items

    async def _list_topics(self, admin: ServiceBusAdministrationClient) -> list[dict[str, Any]]:
        runtime = {}
        async for props in admin.list_topics_runtime_properties():
            runtime[props.name] = props

        items = []
        async for topic in admin.list_topics():
            topic_runtime = runtime.get(topic.name)
            items.append({
                "name": topic.name,
                "status": _status(topic.status),
                "subscription_count": topic_runtime.subscription_count if topic_runtime else None,
                "scheduled_message_count": (
                    topic_runtime.scheduled_message_count if topic_runtime else None
                ),
                "size_in_bytes": topic_runtime.size_in_bytes if topic_runtime else None,
            })
        return items

    async def _list_subscriptions(
        self,
        admin: ServiceBusAdministrationClient,
    ) -> list[dict[str, Any]]:
        items = []
        async for topic in admin.list_topics():
            runtime = {}
            async for props in admin.list_subscriptions_runtime_properties(topic.name):
                runtime[props.name] = props

            async for subscription in admin.list_subscriptions(topic.name):
                items.append({
                    "name": subscription.name,
                    "topic_name": topic.name,
                    "subscription_name": subscription.name,
                    "status": _status(subscription.status),
                    **_message_counts(runtime.get(subscription.name)),
                })
        return items

    # ─── Mutations ───────────────────────────────────────────────

    async def create_entity(
        self,
        handle: ServiceBusHandle,
        kind: EntityKind,
        params: CreateParams,
    ) -> None:
        self.check_kind(kind)
        admin = handle.admin

        if kind is EntityKind.QUEUE:
            with _native_errors("create", "queue", params.name):
                await admin.create_queue(params.name)
        elif kind is EntityKind.TOPIC:
            with _native_errors("create", "topic", params.name):
                await admin.create_topic(params.name)
        else:
            topic_name = self._require_parent(params.parent_name)
            await self._check_topic_exists(admin, topic_name)
            with _native_errors("create", "subscription", f"{topic_name}/{params.name}"):
                await admin.create_subscription(topic_name, params.name)

        logger.info("Created %s: %s", kind.value, params.name)

    async def delete_entity(
        self,
        handle: ServiceBusHandle,
        kind: EntityKind,
        identifier: str,
        parent_name: str | None = None,
    ) -> None:
        self.check_kind(kind)
        admin = handle.admin

        if kind is EntityKind.QUEUE:
            with _native_errors("delete", "queue", identifier):
                await admin.delete_queue(identifier)
        elif kind is EntityKind.TOPIC:
            with _native_errors("delete", "topic", identifier):
                await admin.delete_topic(identifier)
        else:
            topic_name = self._require_parent(parent_name)
            with _native_errors("delete", "subscription", f"{topic_name}/{identifier}"):
                await admin.delete_subscription(topic_name, identifier)

        logger.info("Deleted %s: %s", kind.value, identifier)

    async def set_status(
        self,
        handle: ServiceBusHandle,
        kind: EntityKind,
        identifier: str,
        status: EntityStatus,
        parent_name: str | None = None,
    ) -> None:
        self.check_kind(kind)
        if not isinstance(status, EntityStatus):
            raise InvalidArgumentError(f"Invalid status {status!r}", field="status")

        native_status = NativeEntityStatus(status.value)
        admin = handle.admin

        if kind is EntityKind.QUEUE:
            with _native_errors("update", "queue", identifier):
                queue = await admin.get_queue(identifier)
                queue.status = native_status
                await admin.update_queue(queue)
        elif kind is EntityKind.TOPIC:
            with _native_errors("update", "topic", identifier):
                topic = await admin.get_topic(identifier)
                topic.status = native_status
                await admin.update_topic(topic)
        else:
            topic_name = self._require_parent(parent_name)
            with _native_errors("update", "subscription", f"{topic_name}/{identifier}"):
                subscription = await admin.get_subscription(topic_name, identifier)
                subscription.status = native_status
                await admin.update_subscription(topic_name, subscription)

        logger.info("Set %s %s status to %s", kind.value, identifier, status.value)

    async def purge(
        self,
        handle: ServiceBusHandle,
        kind: EntityKind,
        identifier: str,
        target: PurgeTarget,
        parent_name: str | None = None,
    ) -> int:
        self.check_operation("purge", kind, target)

        sub_queue = ServiceBusSubQueue.DEAD_LETTER if target is PurgeTarget.DEAD_LETTER else None

        if kind is EntityKind.QUEUE:
            description = f"queue '{identifier}' ({target.value})"
            with _native_errors("purge", "queue", identifier):
                await handle.admin.get_queue_runtime_properties(identifier)
            receiver = handle.client.get_queue_receiver(
                queue_name=identifier,
                sub_queue=sub_queue,
                receive_mode=ServiceBusReceiveMode.RECEIVE_AND_DELETE,
            )
        else:
            topic_name = self._require_parent(parent_name)
            description = f"subscription '{topic_name}/{identifier}' ({target.value})"
            with _native_errors("purge", "subscription", f"{topic_name}/{identifier}"):
                await handle.admin.get_subscription_runtime_properties(topic_name, identifier)
            receiver = handle.client.get_subscription_receiver(
                topic_name=topic_name,
                subscription_name=identifier,
                sub_queue=sub_queue,
                receive_mode=ServiceBusReceiveMode.RECEIVE_AND_DELETE,
            )

        return await drain(
            receiver,
            batch_size=self._batch_size,
            max_wait_time=self._max_wait_time,
            description=description,
        )

    # ─── Helpers ─────────────────────────────────────────────────

    @staticmethod
    def _require_parent(parent_name: str | None) -> str:
        if not parent_name:
            raise InvalidArgumentError("Topic name is required for subscriptions", field="parent_name")
        return parent_name

    @staticmethod
    async def _check_topic_exists(admin: ServiceBusAdministrationClient, topic_name: str) -> None:
        try:
            await admin.get_topic(topic_name)
        except ResourceNotFoundError as exc:
            raise ParentNotFoundError(
                f"Topic '{topic_name}' not found",
                details={"resource": "topic", "identifier": topic_name, "cause": str(exc)},
            ) from exc
        except AzureError as exc:
            raise BackendError.wrap(exc, f"Failed to look up topic '{topic_name}'") from exc
