"""
Backend connection registry.

Resolves (family, instance name) to a client handle, opening it on first
use and caching it for the rest of the process. Handles are shared by all
requests and closed together on shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from mqconsole.adapters.base import ClientHandle
from mqconsole.config import BackendInstance, ConsoleSettings
from mqconsole.exceptions import BackendError, ConfigurationError, ConsoleError, NotFoundError
from mqconsole.schemas import BackendFamily


logger = logging.getLogger(__name__)

HandleFactory = Callable[[Any], Awaitable[ClientHandle]]


def default_factories() -> dict[BackendFamily, HandleFactory]:
    """Factories that open real native clients for each family."""
    from mqconsole.adapters.kafka import open_kafka_handle
    from mqconsole.adapters.rabbitmq import open_rabbitmq_handle
    from mqconsole.adapters.servicebus import open_servicebus_handle

    return {
        BackendFamily.SERVICEBUS: open_servicebus_handle,
        BackendFamily.RABBITMQ: open_rabbitmq_handle,
        BackendFamily.KAFKA: open_kafka_handle,
    }


class ConnectionRegistry:
    """
    Lazily opened, process-lifetime cache of client handles.

    Concurrent first calls for the same instance share one in-flight
    construction, so a single handle is built and cached. A failed
    construction is not cached; the next call tries again.

    Example:
        registry = ConnectionRegistry(settings)
        handle = await registry.resolve(BackendFamily.KAFKA, "local")
        ...
        await registry.aclose()
    """

    def __init__(
        self,
        settings: ConsoleSettings,
        factories: Mapping[BackendFamily, HandleFactory] | None = None,
    ):
        """
        Args:
            settings: Immutable console settings holding the instances
            factories: Handle factory per family (defaults open real clients)
        """
        self._settings = settings
        self._instances: dict[BackendFamily, dict[str, BackendInstance]] = {
            family: {instance.name: instance for instance in instances}
            for family, instances in settings.instances_by_family().items()
        }
        self._factories = dict(factories) if factories is not None else default_factories()
        self._handles: dict[tuple[BackendFamily, str], ClientHandle] = {}
        self._pending: dict[tuple[BackendFamily, str], asyncio.Task[ClientHandle]] = {}

    @property
    def settings(self) -> ConsoleSettings:
        return self._settings

    def instances(self, family: BackendFamily) -> list[BackendInstance]:
        """Configured instances of a family, in configuration order."""
        return list(self._instances.get(family, {}).values())

    def get_instance(self, family: BackendFamily, name: str) -> BackendInstance:
        """
        Look up a configured instance.

        Raises:
            NotFoundError: No instance of ``family`` is named ``name``
        """
        instance = self._instances.get(family, {}).get(name)
        if instance is None:
            available = ", ".join(self._instances.get(family, {})) or "none"
            raise NotFoundError(
                f"{family.value} instance '{name}' not found (available: {available})",
                details={"family": family.value, "instance": name},
            )
        return instance

    def is_open(self, family: BackendFamily, name: str) -> bool:
        return (family, name) in self._handles

    async def resolve(self, family: BackendFamily, name: str) -> ClientHandle:
        """
        Return the cached handle for an instance, opening it if needed.

        Raises:
            NotFoundError: Unknown instance
            BackendError: The native client could not be opened
        """
        key = (family, name)
        handle = self._handles.get(key)
        if handle is not None:
            return handle

        instance = self.get_instance(family, name)

        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._open(key, instance))
            self._pending[key] = task

        # shield: a caller going away must not cancel the shared construction
        return await asyncio.shield(task)

    async def _open(
        self,
        key: tuple[BackendFamily, str],
        instance: BackendInstance,
    ) -> ClientHandle:
        family, name = key
        factory = self._factories.get(family)
        if factory is None:
            self._pending.pop(key, None)
            raise ConfigurationError(f"No client factory registered for {family.value}")

        try:
            handle = await factory(instance)
        except ConsoleError:
            raise
        except Exception as exc:
            logger.error("Failed to open %s instance '%s': %s", family.value, name, exc)
            raise BackendError.wrap(exc, f"Could not connect to {family.value} instance '{name}'")
        else:
            self._handles[key] = handle
            logger.info("Opened %s instance '%s'", family.value, name)
            return handle
        finally:
            self._pending.pop(key, None)

    async def aclose(self) -> None:
        """
        Close every cached handle.

        A handle that fails to close is logged and skipped.
        """
        handles = list(self._handles.items())
        self._handles.clear()

        for (family, name), handle in handles:
            try:
                await handle.close()
            except Exception as exc:
                logger.warning("Failed to close %s instance '%s': %s", family.value, name, exc)
            else:
                logger.info("Closed %s instance '%s'", family.value, name)
