"""
RabbitMQ admin adapter.

Mutations and purges go over AMQP through aio-pika. AMQP has no listing
call, so queues are listed through the management plugin's HTTP API.
Exchanges are not listed at all: the listing is always empty.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import aio_pika
import httpx
from aio_pika.abc import AbstractChannel, AbstractRobustConnection
from aio_pika.exceptions import AMQPError, ChannelNotFoundEntity, ChannelPreconditionFailed

from mqconsole.adapters.base import AdminAdapter
from mqconsole.config import RabbitMQInstance
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

MANAGEMENT_TIMEOUT_SECONDS = 10.0


@dataclass
class RabbitMQHandle:
    """Robust AMQP connection plus a management API client."""

    connection: AbstractRobustConnection
    management: httpx.AsyncClient
    vhost: str = "/"

    async def close(self) -> None:
        try:
            await self.management.aclose()
        finally:
            await self.connection.close()


async def open_rabbitmq_handle(instance: RabbitMQInstance) -> RabbitMQHandle:
    """Connect to the broker and prepare the management client."""
    connection = await aio_pika.connect_robust(instance.url)
    management = httpx.AsyncClient(
        base_url=instance.resolved_management_url(),
        auth=instance.credentials(),
        timeout=MANAGEMENT_TIMEOUT_SECONDS,
    )
    return RabbitMQHandle(connection=connection, management=management, vhost=instance.vhost)


@asynccontextmanager
async def _channel(connection: AbstractRobustConnection) -> AsyncIterator[AbstractChannel]:
    """Short-lived channel; the broker closes it on errors such as a failed passive declare."""
    channel = await connection.channel()
    try:
        yield channel
    finally:
        if not channel.is_closed:
            await channel.close()


@contextmanager
def _native_errors(action: str, resource: str, identifier: str) -> Iterator[None]:
    """Translate aio-pika and httpx exceptions into console exceptions."""
    try:
        yield
    except ConsoleError:
        raise
    except ChannelNotFoundEntity as exc:
        raise NotFoundError.for_resource(resource, identifier, cause=str(exc)) from exc
    except ChannelPreconditionFailed as exc:
        raise AlreadyExistsError(
            f"{resource.capitalize()} '{identifier}' already exists with different arguments",
            details={"resource": resource, "identifier": identifier, "cause": str(exc)},
        ) from exc
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code == 404:
            raise NotFoundError.for_resource(resource, identifier, cause=str(exc)) from exc
        raise BackendError.wrap(exc, f"Failed to {action} {resource} '{identifier}'") from exc
    except (AMQPError, httpx.HTTPError, OSError) as exc:
        raise BackendError.wrap(exc, f"Failed to {action} {resource} '{identifier}'") from exc


class RabbitMQAdapter(AdminAdapter):
    """
    Queue and exchange management for RabbitMQ.

    Example:
        adapter = RabbitMQAdapter()
        handle = await open_rabbitmq_handle(instance)
        await adapter.create_entity(handle, EntityKind.QUEUE, CreateParams(name="orders"))
        purged = await adapter.purge(handle, EntityKind.QUEUE, "orders", PurgeTarget.ACTIVE)
    """

    family = BackendFamily.RABBITMQ
    supported_kinds = frozenset({EntityKind.QUEUE, EntityKind.EXCHANGE})
    unsupported_operations = frozenset({("set_status", None)})
    purge_targets = frozenset({PurgeTarget.ACTIVE})

    exchange_type = aio_pika.ExchangeType.TOPIC

    # ─── Listing ─────────────────────────────────────────────────

    async def list_entities(
        self,
        handle: RabbitMQHandle,
        kind: EntityKind,
        query: QueryDescriptor,
    ) -> list[dict[str, Any]]:
        self.check_kind(kind)

        if kind is EntityKind.EXCHANGE:
            # TODO: list exchanges through /api/exchanges/{vhost} once the
            # management client is trusted for more than queue listing
            logger.debug("Exchange listing is not available over AMQP; returning no items")
            return []

        path = f"/api/queues/{quote(handle.vhost, safe='')}"
        with _native_errors("list", "vhost", handle.vhost):
            response = await handle.management.get(path)
            response.raise_for_status()
            queues = response.json()

        return [
            {
                "name": queue["name"],
                "vhost": queue.get("vhost", handle.vhost),
                "messages": queue.get("messages", 0),
                "messages_ready": queue.get("messages_ready", 0),
                "messages_unacknowledged": queue.get("messages_unacknowledged", 0),
                "consumers": queue.get("consumers", 0),
                "durable": queue.get("durable"),
                "state": queue.get("state"),
            }
            for queue in queues
        ]

    # ─── Mutations ───────────────────────────────────────────────

    async def create_entity(
        self,
        handle: RabbitMQHandle,
        kind: EntityKind,
        params: CreateParams,
    ) -> None:
        self.check_kind(kind)

        if await self._exists(handle, kind, params.name):
            raise AlreadyExistsError(
                f"{kind.value.capitalize()} '{params.name}' already exists",
                details={"resource": kind.value, "identifier": params.name},
            )

        with _native_errors("create", kind.value, params.name):
            async with _channel(handle.connection) as channel:
                if kind is EntityKind.QUEUE:
                    await channel.declare_queue(params.name, durable=True)
                else:
                    await channel.declare_exchange(params.name, self.exchange_type, durable=True)

        logger.info("Created %s: %s", kind.value, params.name)

    async def delete_entity(
        self,
        handle: RabbitMQHandle,
        kind: EntityKind,
        identifier: str,
        parent_name: str | None = None,
    ) -> None:
        self.check_kind(kind)

        # queue_delete / exchange_delete succeed on missing entities
        if not await self._exists(handle, kind, identifier):
            raise NotFoundError.for_resource(kind.value, identifier)

        with _native_errors("delete", kind.value, identifier):
            async with _channel(handle.connection) as channel:
                if kind is EntityKind.QUEUE:
                    await channel.queue_delete(identifier)
                else:
                    await channel.exchange_delete(identifier)

        logger.info("Deleted %s: %s", kind.value, identifier)

    async def set_status(
        self,
        handle: RabbitMQHandle,
        kind: EntityKind,
        identifier: str,
        status: EntityStatus,
        parent_name: str | None = None,
    ) -> None:
        self.check_operation("set_status", kind)

    async def purge(
        self,
        handle: RabbitMQHandle,
        kind: EntityKind,
        identifier: str,
        target: PurgeTarget,
        parent_name: str | None = None,
    ) -> int:
        self.check_operation("purge", kind, target)

        if kind is EntityKind.EXCHANGE:
            # exchanges route messages but never store them
            return 0

        with _native_errors("purge", "queue", identifier):
            async with _channel(handle.connection) as channel:
                queue = await channel.declare_queue(identifier, passive=True)
                result = await queue.purge()

        count = result.message_count or 0
        logger.info("Purged %d message(s) from queue '%s'", count, identifier)
        return count

    # ─── Helpers ─────────────────────────────────────────────────

    async def _exists(self, handle: RabbitMQHandle, kind: EntityKind, name: str) -> bool:
        """Passive declare on a throwaway channel."""
        try:
            with _native_errors("look up", kind.value, name):
                async with _channel(handle.connection) as channel:
                    if kind is EntityKind.QUEUE:
                        await channel.declare_queue(name, passive=True)
                    else:
                        await channel.get_exchange(name, ensure=True)
        except NotFoundError:
            return False
        return True
