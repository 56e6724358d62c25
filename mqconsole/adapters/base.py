"""
Admin adapter interface.

Every backend family implements AdminAdapter, so the console can route
any (family, kind, operation) to the right native calls without knowing
how each backend paginates, purges or reports errors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Protocol

from mqconsole.exceptions import InvalidArgumentError, UnsupportedOperationError
from mqconsole.schemas import (
    BackendFamily,
    CreateParams,
    EntityKind,
    EntityStatus,
    PurgeTarget,
    QueryDescriptor,
)


class ClientHandle(Protocol):
    """Live native clients for one backend instance."""

    async def close(self) -> None: ...


def parse_status(value: Any) -> EntityStatus:
    """Coerce ``value`` to Active/Disabled or raise InvalidArgumentError."""
    if isinstance(value, EntityStatus):
        return value
    try:
        return EntityStatus(value)
    except ValueError:
        raise InvalidArgumentError(
            f"Invalid status {value!r}; expected one of: "
            f"{', '.join(s.value for s in EntityStatus)}",
            field="status",
        ) from None


def parse_target(value: Any) -> PurgeTarget:
    """Coerce ``value`` to a purge target or raise InvalidArgumentError."""
    if isinstance(value, PurgeTarget):
        return value
    try:
        return PurgeTarget(value)
    except ValueError:
        raise InvalidArgumentError(
            f"Invalid purge target {value!r}; expected one of: "
            f"{', '.join(t.value for t in PurgeTarget)}",
            field="target",
        ) from None


class AdminAdapter(ABC):
    """
    Abstract base class for backend admin adapters.

    Adapters translate the uniform operation set into native admin calls.
    They return full, unfiltered listings (the console normalizes them)
    and raise only exceptions from ``mqconsole.exceptions``.

    Example:
        class MyAdapter(AdminAdapter):
            family = BackendFamily.KAFKA
            supported_kinds = frozenset({EntityKind.TOPIC})

            async def list_entities(self, handle, kind, query):
                return [{"name": name} for name in await handle.topics()]
    """

    family: ClassVar[BackendFamily]
    supported_kinds: ClassVar[frozenset[EntityKind]] = frozenset()

    #: (operation, kind) pairs the family cannot perform; kind None means every kind.
    unsupported_operations: ClassVar[frozenset[tuple[str, EntityKind | None]]] = frozenset()

    #: Message stores a purge can target.
    purge_targets: ClassVar[frozenset[PurgeTarget]] = frozenset(PurgeTarget)

    def check_kind(self, kind: EntityKind) -> None:
        """Raise UnsupportedOperationError if this family has no such entity kind."""
        if kind not in self.supported_kinds:
            supported = ", ".join(sorted(k.value for k in self.supported_kinds))
            raise UnsupportedOperationError(
                f"{self.family.value} does not manage {kind.value} entities "
                f"(supported: {supported})",
                field="kind",
            )

    def unsupported(self, operation: str, kind: EntityKind) -> UnsupportedOperationError:
        return UnsupportedOperationError(
            f"{self.family.value} does not support {operation} on {kind.value} entities",
            details={"family": self.family.value, "kind": kind.value, "operation": operation},
        )

    def check_operation(
        self,
        operation: str,
        kind: EntityKind,
        target: PurgeTarget | None = None,
    ) -> None:
        """
        Raise UnsupportedOperationError unless this family can run
        ``operation`` on ``kind`` (and, for purges, on ``target``).

        Needs no handle: callers run it before opening a connection.
        """
        self.check_kind(kind)
        unsupported = self.unsupported_operations
        if (operation, kind) in unsupported or (operation, None) in unsupported:
            raise self.unsupported(operation, kind)
        if target is not None and target not in self.purge_targets:
            raise self.unsupported(f"{operation} of {target.value}", kind)

    def filter_fields(self, kind: EntityKind) -> tuple[str, str | None]:
        """
        Fields matched by the name filter and the child-name filter.

        Flat kinds filter on ``name`` only; hierarchical kinds override this.
        """
        return "name", None

    @abstractmethod
    async def list_entities(
        self,
        handle: Any,
        kind: EntityKind,
        query: QueryDescriptor,
    ) -> list[dict[str, Any]]:
        """
        Return every entity of ``kind``, in backend retrieval order.

        Cursor-based native listings must be exhausted before returning.
        """
        ...

    @abstractmethod
    async def create_entity(
        self,
        handle: Any,
        kind: EntityKind,
        params: CreateParams,
    ) -> None:
        """
        Create an entity.

        Raises:
            AlreadyExistsError: Entity already exists
            ParentNotFoundError: Parent of a hierarchical kind is missing
            BackendError: Any other native failure
        """
        ...

    @abstractmethod
    async def delete_entity(
        self,
        handle: Any,
        kind: EntityKind,
        identifier: str,
        parent_name: str | None = None,
    ) -> None:
        """Delete an entity."""
        ...

    @abstractmethod
    async def set_status(
        self,
        handle: Any,
        kind: EntityKind,
        identifier: str,
        status: EntityStatus,
        parent_name: str | None = None,
    ) -> None:
        """Enable or disable an entity."""
        ...

    @abstractmethod
    async def purge(
        self,
        handle: Any,
        kind: EntityKind,
        identifier: str,
        target: PurgeTarget,
        parent_name: str | None = None,
    ) -> int:
        """
        Remove all messages from one store of a container.

        Returns:
            Number of messages removed (0 for kinds with no message store)
        """
        ...
