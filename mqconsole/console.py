"""
Aggregation facade.

AdminConsole is the single entry point for callers (the HTTP router, or
anything else presenting the console). It validates identifying
parameters before any I/O, resolves the client handle, dispatches to the
family's adapter, normalizes listings, and guarantees that every failure
leaving it is a ConsoleError.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from pydantic import BaseModel, ValidationError

from mqconsole.adapters import AdminAdapter, default_adapters, parse_status, parse_target
from mqconsole.exceptions import BackendError, ConsoleError, InvalidArgumentError
from mqconsole.normalizer import normalize
from mqconsole.registry import ConnectionRegistry
from mqconsole.schemas import (
    HIERARCHICAL_KINDS,
    BackendFamily,
    CreatedResult,
    CreateParams,
    DeletedResult,
    EntityKind,
    InstanceInfo,
    Page,
    PurgeResult,
    QueryDescriptor,
    UpdatedResult,
)


logger = logging.getLogger(__name__)


def _parse_enum(enum_cls: type, value: Any, field: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise InvalidArgumentError(
            f"Invalid {field} {value!r}; expected one of: {choices}",
            field=field,
        ) from None


def _require(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidArgumentError(f"{field} is required", field=field)
    return str(value)


def _validate_model(model_cls: type[BaseModel], data: Any, field: str) -> Any:
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data or {})
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or field}: {error['msg']}"
            for error in exc.errors()
        )
        raise InvalidArgumentError(
            f"Invalid {field}: {problems}",
            field=field,
        ) from None


class AdminConsole:
    """
    Uniform admin operations over every configured backend.

    Example:
        registry = ConnectionRegistry(settings)
        console = AdminConsole(registry)

        page = await console.list_entities(
            "servicebus", "prod", "queue",
            {"name_filter": "orders", "order_by": "active_message_count", "order": "desc"},
        )
        await console.purge("servicebus", "prod", "queue", "orders", "deadLetter")
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        adapters: Mapping[BackendFamily, AdminAdapter] | None = None,
        listing_warn_threshold: int | None = None,
    ):
        """
        Args:
            registry: Connection registry holding the configured instances
            adapters: Adapter per family (defaults to the built-in adapters)
            listing_warn_threshold: Warn when a full listing exceeds this size
                (defaults to the registry settings' value)
        """
        settings = registry.settings
        self._registry = registry
        self._adapters = dict(adapters) if adapters is not None else default_adapters(
            drain_batch_size=settings.drain_batch_size,
            drain_max_wait_seconds=settings.drain_max_wait_seconds,
        )
        self._listing_warn_threshold = (
            listing_warn_threshold
            if listing_warn_threshold is not None
            else settings.listing_warn_threshold
        )

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    # ─── Routing ─────────────────────────────────────────────────

    def _route(
        self,
        family: BackendFamily | str,
        instance_name: str | None,
        kind: EntityKind | str,
    ) -> tuple[BackendFamily, str, EntityKind, AdminAdapter]:
        family = _parse_enum(BackendFamily, family, "family")
        instance_name = _require(instance_name, "instance_name")
        kind = _parse_enum(EntityKind, kind, "kind")

        adapter = self._adapters.get(family)
        if adapter is None:
            raise InvalidArgumentError(f"No adapter for {family.value}", field="family")
        adapter.check_kind(kind)
        return family, instance_name, kind, adapter

    @staticmethod
    def _require_parent(kind: EntityKind, parent_name: str | None) -> str | None:
        if kind in HIERARCHICAL_KINDS:
            return _require(parent_name, "parent_name")
        return parent_name

    @contextmanager
    def _classified(self, operation: str) -> Iterator[None]:
        """Last stop for unclassified errors: anything not a ConsoleError becomes BackendError."""
        try:
            yield
        except ConsoleError as exc:
            logger.warning("%s failed [%s]: %s", operation, exc.code, exc.message)
            raise
        except Exception as exc:
            logger.exception("%s failed with an unclassified error", operation)
            raise BackendError.wrap(exc, f"{operation} failed") from exc

    # ─── Queries ─────────────────────────────────────────────────

    def list_instances(self, family: BackendFamily | str) -> list[InstanceInfo]:
        """Configured instance names for a family."""
        family = _parse_enum(BackendFamily, family, "family")
        return [InstanceInfo(name=instance.name) for instance in self._registry.instances(family)]

    async def list_entities(
        self,
        family: BackendFamily | str,
        instance_name: str | None,
        kind: EntityKind | str,
        query: QueryDescriptor | Mapping[str, Any] | None = None,
    ) -> Page:
        """
        Filtered, sorted, paginated listing of one entity kind.

        ``total`` counts the filtered set; ``items`` holds at most
        ``query.top`` entities starting at ``query.skip``.
        """
        family, instance_name, kind, adapter = self._route(family, instance_name, kind)
        query = _validate_model(QueryDescriptor, query, "query")

        operation = f"list {kind.value} on {family.value}/{instance_name}"
        with self._classified(operation):
            handle = await self._registry.resolve(family, instance_name)
            raw = await adapter.list_entities(handle, kind, query)

        if len(raw) > self._listing_warn_threshold:
            logger.warning(
                "%s returned %d entities (threshold %d); filtering happens client-side",
                operation, len(raw), self._listing_warn_threshold,
            )

        name_field, child_name_field = adapter.filter_fields(kind)
        page = normalize(raw, query, name_field=name_field, child_name_field=child_name_field)
        logger.info("Returning %d of %d %s entities", len(page.items), page.total, kind.value)
        return page

    # ─── Mutations ───────────────────────────────────────────────

    async def create_entity(
        self,
        family: BackendFamily | str,
        instance_name: str | None,
        kind: EntityKind | str,
        params: CreateParams | Mapping[str, Any] | None,
    ) -> CreatedResult:
        family, instance_name, kind, adapter = self._route(family, instance_name, kind)
        params = _validate_model(CreateParams, params, "params")
        self._require_parent(kind, params.parent_name)
        adapter.check_operation("create", kind)

        with self._classified(f"create {kind.value} '{params.name}' on {family.value}/{instance_name}"):
            handle = await self._registry.resolve(family, instance_name)
            await adapter.create_entity(handle, kind, params)
        return CreatedResult()

    async def delete_entity(
        self,
        family: BackendFamily | str,
        instance_name: str | None,
        kind: EntityKind | str,
        identifier: str | None,
        parent_name: str | None = None,
    ) -> DeletedResult:
        family, instance_name, kind, adapter = self._route(family, instance_name, kind)
        identifier = _require(identifier, "identifier")
        parent_name = self._require_parent(kind, parent_name)
        adapter.check_operation("delete", kind)

        with self._classified(f"delete {kind.value} '{identifier}' on {family.value}/{instance_name}"):
            handle = await self._registry.resolve(family, instance_name)
            await adapter.delete_entity(handle, kind, identifier, parent_name=parent_name)
        return DeletedResult()

    async def set_status(
        self,
        family: BackendFamily | str,
        instance_name: str | None,
        kind: EntityKind | str,
        identifier: str | None,
        status: Any,
        parent_name: str | None = None,
    ) -> UpdatedResult:
        family, instance_name, kind, adapter = self._route(family, instance_name, kind)
        identifier = _require(identifier, "identifier")
        parent_name = self._require_parent(kind, parent_name)
        status = parse_status(status)
        adapter.check_operation("set_status", kind)

        with self._classified(f"set status of {kind.value} '{identifier}' on {family.value}/{instance_name}"):
            handle = await self._registry.resolve(family, instance_name)
            await adapter.set_status(handle, kind, identifier, status, parent_name=parent_name)
        return UpdatedResult()

    async def purge(
        self,
        family: BackendFamily | str,
        instance_name: str | None,
        kind: EntityKind | str,
        identifier: str | None,
        target: Any,
        parent_name: str | None = None,
    ) -> PurgeResult:
        family, instance_name, kind, adapter = self._route(family, instance_name, kind)
        identifier = _require(identifier, "identifier")
        parent_name = self._require_parent(kind, parent_name)
        target = parse_target(target)
        adapter.check_operation("purge", kind, target)

        with self._classified(f"purge {kind.value} '{identifier}' on {family.value}/{instance_name}"):
            handle = await self._registry.resolve(family, instance_name)
            count = await adapter.purge(handle, kind, identifier, target, parent_name=parent_name)
        return PurgeResult(purged_count=count)
