"""
Application factory.

Builds the FastAPI app around one ConnectionRegistry and one AdminConsole,
and closes every cached backend handle when the app shuts down.

Usage:
    uvicorn mqconsole.app:create_app --factory
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mqconsole.api import create_console_router, install_exception_handlers
from mqconsole.config import ConsoleSettings, get_settings
from mqconsole.console import AdminConsole
from mqconsole.registry import ConnectionRegistry


logger = logging.getLogger(__name__)


def create_app(
    settings: ConsoleSettings | None = None,
    registry: ConnectionRegistry | None = None,
    console: AdminConsole | None = None,
) -> FastAPI:
    """
    Create the console application.

    Args:
        settings: Console settings (process-wide settings if omitted)
        registry: Connection registry (built from settings if omitted)
        console: Facade (built from the registry if omitted)
    """
    if console is not None:
        registry = console.registry
    settings = settings or (registry.settings if registry is not None else get_settings())
    registry = registry or ConnectionRegistry(settings)
    console = console or AdminConsole(registry)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s", settings.app_name)
        yield
        logger.info("Shutting down; closing backend connections")
        await registry.aclose()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.console = console
    install_exception_handlers(app)
    app.include_router(create_console_router(console, api_key=settings.api_key))
    return app
