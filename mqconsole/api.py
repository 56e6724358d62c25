"""
HTTP API for the admin console.

Thin JSON layer over AdminConsole. Input validation, routing and error
classification all happen in the console; this module only maps HTTP
requests onto console calls and ConsoleError onto status codes.

Routes (mounted under /api):
    GET    /{family}/instances
    GET    /{family}/{instance}/{kind}
    POST   /{family}/{instance}/{kind}
    DELETE /{family}/{instance}/{kind}/{identifier}
    PUT    /{family}/{instance}/{kind}/{identifier}/status
    POST   /{family}/{instance}/{kind}/{identifier}/purge
"""

from __future__ import annotations

import logging
import secrets
from typing import Any

from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from mqconsole.console import AdminConsole
from mqconsole.exceptions import ConsoleError, InvalidArgumentError
from mqconsole.schemas import (
    CreatedResult,
    DeletedResult,
    InstanceInfo,
    Page,
    PurgeResult,
    UpdatedResult,
)


logger = logging.getLogger(__name__)


def error_response(exc: ConsoleError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


def install_exception_handlers(app: FastAPI) -> None:
    """Render every ConsoleError as ``{"error": {...}}`` with its status code."""

    @app.exception_handler(ConsoleError)
    async def console_error_handler(request: Request, exc: ConsoleError) -> JSONResponse:
        return error_response(exc)

    # malformed path, query or body values are invalid arguments too (400, not 422)
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = exc.errors()
        loc = errors[0].get("loc", ()) if errors else ()
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
            for error in errors
        )
        return error_response(InvalidArgumentError(
            f"Invalid request: {problems}",
            field=str(loc[-1]) if loc else None,
        ))


class _Unauthorized(ConsoleError):
    message = "Unauthorized"
    code = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


def _api_key_dependency(api_key: str | None):
    async def check_api_key(request: Request) -> None:
        if not api_key:
            return
        provided = request.headers.get("x-api-key", "")
        if not secrets.compare_digest(provided, api_key):
            logger.warning("Rejected request to %s: missing or invalid API key", request.url.path)
            raise _Unauthorized()

    return check_api_key


def create_console_router(console: AdminConsole, api_key: str | None = None) -> APIRouter:
    """Create the console API router."""
    router = APIRouter(
        prefix="/api",
        tags=["console"],
        dependencies=[Depends(_api_key_dependency(api_key))],
    )

    @router.get("/{family}/instances")
    async def list_instances(family: str) -> list[InstanceInfo]:
        """Configured instances of a backend family."""
        return console.list_instances(family)

    @router.get("/{family}/{instance}/{kind}")
    async def list_entities(
        family: str,
        instance: str,
        kind: str,
        skip: int = Query(0),
        top: int = Query(25),
        name_filter: str = Query(""),
        subscription_name_filter: str = Query(""),
        order_by: str | None = Query(None),
        order: str = Query("asc"),
    ) -> Page:
        """Filtered, sorted, paginated entity listing."""
        return await console.list_entities(
            family,
            instance,
            kind,
            {
                "skip": skip,
                "top": top,
                "name_filter": name_filter,
                "subscription_name_filter": subscription_name_filter,
                "order_by": order_by or None,
                "order": order,
            },
        )

    @router.post("/{family}/{instance}/{kind}", status_code=status.HTTP_201_CREATED)
    async def create_entity(
        family: str,
        instance: str,
        kind: str,
        body: dict[str, Any] = Body(...),
    ) -> CreatedResult:
        """Create a queue, topic, subscription or exchange."""
        return await console.create_entity(family, instance, kind, body)

    @router.delete("/{family}/{instance}/{kind}/{identifier}")
    async def delete_entity(
        family: str,
        instance: str,
        kind: str,
        identifier: str,
        parent_name: str | None = Query(None),
    ) -> DeletedResult:
        return await console.delete_entity(family, instance, kind, identifier, parent_name=parent_name)

    @router.put("/{family}/{instance}/{kind}/{identifier}/status")
    async def set_status(
        family: str,
        instance: str,
        kind: str,
        identifier: str,
        body: dict[str, Any] = Body(...),
        parent_name: str | None = Query(None),
    ) -> UpdatedResult:
        """Enable or disable an entity. Body: ``{"status": "Active" | "Disabled"}``."""
        return await console.set_status(
            family, instance, kind, identifier, body.get("status"), parent_name=parent_name,
        )

    @router.post("/{family}/{instance}/{kind}/{identifier}/purge")
    async def purge(
        family: str,
        instance: str,
        kind: str,
        identifier: str,
        target: str = Query("active"),
        parent_name: str | None = Query(None),
    ) -> PurgeResult:
        """Remove all messages from the active or dead-letter store."""
        return await console.purge(family, instance, kind, identifier, target, parent_name=parent_name)

    return router
