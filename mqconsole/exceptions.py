"""
Exception classes for the admin console.

Every failure that leaves the aggregation layer is one of these, so callers
get a stable error kind and a human-readable message regardless of which
backend produced it.

Exception Hierarchy:
    ConsoleError (base)
    ├── InvalidArgumentError
    │   └── UnsupportedOperationError
    ├── NotFoundError
    │   └── ParentNotFoundError
    ├── AlreadyExistsError
    ├── BackendError
    │   └── PartialOperationError
    └── ConfigurationError

Example:
    from mqconsole.exceptions import NotFoundError, BackendError

    raise NotFoundError("Queue 'orders' not found")
    raise BackendError.wrap(exc, "Failed to list queues")
"""

from __future__ import annotations

from typing import Any

from fastapi import status


# =============================================================================
# Base Exception
# =============================================================================

class ConsoleError(Exception):
    """
    Base exception for all console errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional error details
        status_code: HTTP status used by the API layer
    """

    message: str = "An error occurred"
    code: str = "error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        result = {
            "message": self.message,
            "code": self.code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, code={self.code!r})"


# =============================================================================
# Input Errors
# =============================================================================

class InvalidArgumentError(ConsoleError):
    """
    Missing or malformed input, detected before any backend call.

    Example:
        raise InvalidArgumentError("Instance name is required", field="instance_name")
    """

    message = "Invalid argument"
    code = "invalid_argument"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str | None = None,
        field: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        return result


class UnsupportedOperationError(InvalidArgumentError):
    """Raised when a backend family cannot perform an operation on an entity kind."""

    message = "Operation not supported by this backend"
    code = "unsupported_operation"


# =============================================================================
# Lookup Errors
# =============================================================================

class NotFoundError(ConsoleError):
    """
    Named instance or entity does not exist.

    Example:
        raise NotFoundError.for_resource("queue", "orders")
    """

    message = "Resource not found"
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    @classmethod
    def for_resource(cls, resource: str, identifier: str, **details: Any) -> "NotFoundError":
        """Build a not-found error with a standard message."""
        return cls(
            f"{resource.capitalize()} '{identifier}' not found",
            details={"resource": resource, "identifier": identifier, **details},
        )


class ParentNotFoundError(NotFoundError):
    """Parent entity of a hierarchical kind (topic of a subscription) is missing."""

    message = "Parent resource not found"
    code = "parent_not_found"


class AlreadyExistsError(ConsoleError):
    """Create collided with an existing entity."""

    message = "Resource already exists"
    code = "already_exists"
    status_code = status.HTTP_409_CONFLICT


# =============================================================================
# Backend Errors
# =============================================================================

class BackendError(ConsoleError):
    """
    Wraps a native client failure (network, auth, timeout, protocol).

    The original message is preserved in ``details["cause"]``.
    """

    message = "Backend operation failed"
    code = "backend_error"
    status_code = status.HTTP_502_BAD_GATEWAY

    @classmethod
    def wrap(cls, exc: BaseException, message: str | None = None) -> "BackendError":
        """Wrap a native exception, keeping its type and message for diagnostics."""
        cause = str(exc) or exc.__class__.__name__
        error = cls(
            f"{message}: {cause}" if message else cause,
            details={"cause": cause, "type": exc.__class__.__name__},
        )
        error.__cause__ = exc
        return error


class PartialOperationError(BackendError):
    """
    A purge aborted mid-drain.

    The number of messages removed before the failure is not reported;
    a full purge has to be retried to reach a known state.
    """

    message = "Operation aborted before completion"
    code = "partial_operation"


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(ConsoleError):
    """
    Raised when the console configuration is invalid.

    Example:
        raise ConfigurationError("Duplicate Kafka instance name 'local'")
    """

    message = "Configuration error"
    code = "configuration_error"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
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
