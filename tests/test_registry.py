"""
Tests for the connection registry.
"""

import asyncio
import logging

import pytest

from mqconsole.config import ConsoleSettings
from mqconsole.exceptions import (
    BackendError,
    ConfigurationError,
    InvalidArgumentError,
    NotFoundError,
)
from mqconsole.registry import ConnectionRegistry
from mqconsole.schemas import BackendFamily


class TestLookup:
    """Configured instances."""

    def test_instances_in_configuration_order(self, registry):
        names = [instance.name for instance in registry.instances(BackendFamily.SERVICEBUS)]

        assert names == ["prod", "staging"]

    def test_family_without_instances(self):
        registry = ConnectionRegistry(ConsoleSettings(_env_file=None), factories={})

        assert registry.instances(BackendFamily.KAFKA) == []

    def test_unknown_instance(self, registry):
        with pytest.raises(NotFoundError) as exc_info:
            registry.get_instance(BackendFamily.KAFKA, "missing")

        assert exc_info.value.details == {"family": "kafka", "instance": "missing"}

    def test_same_name_in_different_families(self, registry):
        kafka = registry.get_instance(BackendFamily.KAFKA, "local")
        rabbit = registry.get_instance(BackendFamily.RABBITMQ, "local")

        assert kafka.family is BackendFamily.KAFKA
        assert rabbit.family is BackendFamily.RABBITMQ


class TestResolve:
    """Lazy construction and caching."""

    @pytest.mark.asyncio
    async def test_opens_once_and_caches(self, registry, factory):
        first = await registry.resolve(BackendFamily.SERVICEBUS, "prod")
        second = await registry.resolve(BackendFamily.SERVICEBUS, "prod")

        assert first is second
        assert factory.calls == ["prod"]
        assert registry.is_open(BackendFamily.SERVICEBUS, "prod")

    @pytest.mark.asyncio
    async def test_concurrent_first_calls_share_construction(self, settings, make_factory):
        factory = make_factory(delay=0.01)
        registry = ConnectionRegistry(settings, factories={BackendFamily.KAFKA: factory})

        handles = await asyncio.gather(
            *(registry.resolve(BackendFamily.KAFKA, "local") for _ in range(10))
        )

        assert factory.calls == ["local"]
        assert all(handle is handles[0] for handle in handles)

    @pytest.mark.asyncio
    async def test_instances_get_separate_handles(self, registry, factory):
        prod = await registry.resolve(BackendFamily.SERVICEBUS, "prod")
        staging = await registry.resolve(BackendFamily.SERVICEBUS, "staging")

        assert prod is not staging
        assert factory.calls == ["prod", "staging"]

    @pytest.mark.asyncio
    async def test_unknown_instance_never_calls_factory(self, registry, factory):
        with pytest.raises(NotFoundError):
            await registry.resolve(BackendFamily.SERVICEBUS, "missing")

        assert factory.calls == []

    @pytest.mark.asyncio
    async def test_failed_construction_is_not_cached(self, settings, make_factory):
        factory = make_factory(fail_times=1)
        registry = ConnectionRegistry(settings, factories={BackendFamily.KAFKA: factory})

        with pytest.raises(BackendError) as exc_info:
            await registry.resolve(BackendFamily.KAFKA, "local")

        assert exc_info.value.details["type"] == "ConnectionRefusedError"
        assert not registry.is_open(BackendFamily.KAFKA, "local")

        handle = await registry.resolve(BackendFamily.KAFKA, "local")

        assert handle.name == "local"
        assert factory.calls == ["local", "local"]

    @pytest.mark.asyncio
    async def test_console_errors_from_factory_pass_through(self, settings, make_factory):
        factory = make_factory(fail_times=1, error=InvalidArgumentError("bad connection string"))
        registry = ConnectionRegistry(settings, factories={BackendFamily.KAFKA: factory})

        with pytest.raises(InvalidArgumentError):
            await registry.resolve(BackendFamily.KAFKA, "local")

    @pytest.mark.asyncio
    async def test_missing_factory(self, settings):
        registry = ConnectionRegistry(settings, factories={})

        with pytest.raises(ConfigurationError):
            await registry.resolve(BackendFamily.KAFKA, "local")


class TestClose:
    """Shutdown."""

    @pytest.mark.asyncio
    async def test_closes_every_handle(self, registry, factory):
        await registry.resolve(BackendFamily.SERVICEBUS, "prod")
        await registry.resolve(BackendFamily.KAFKA, "local")

        await registry.aclose()

        assert all(handle.closed for handle in factory.handles)
        assert not registry.is_open(BackendFamily.SERVICEBUS, "prod")

    @pytest.mark.asyncio
    async def test_close_failure_does_not_stop_others(self, settings, make_handle, caplog):
        broken = make_handle("prod", close_error=OSError("socket already closed"))
        healthy = make_handle("staging")
        handles = {"prod": broken, "staging": healthy}

        async def factory(instance):
            return handles[instance.name]

        registry = ConnectionRegistry(settings, factories={BackendFamily.SERVICEBUS: factory})
        await registry.resolve(BackendFamily.SERVICEBUS, "prod")
        await registry.resolve(BackendFamily.SERVICEBUS, "staging")

        with caplog.at_level(logging.WARNING, logger="mqconsole.registry"):
            await registry.aclose()

        assert healthy.closed
        assert "Failed to close servicebus instance 'prod'" in caplog.text
