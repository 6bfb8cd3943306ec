"""Application factory for the web server."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.routing import Route

from warehouse.lib.config import get_settings
from warehouse.lib.exceptions import StartupError
from warehouse.lib.store import RealtimeStore, create_store
from warehouse.logging import configure, get_logger
from warehouse.monitor import Monitor

from .api.health import health_check

_logger = get_logger("server.entrypoint")


def _make_lifespan(store: RealtimeStore | None):
    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        """Start monitoring before serving, stop it on shutdown.

        A StartupError raised here aborts application startup.
        """
        app_store = store or create_store()
        monitor = Monitor(app_store)
        try:
            await monitor.start()
        except StartupError:
            _logger.critical("Could not start the warehouse monitor")
            await app_store.close()
            raise
        monitor_task = asyncio.create_task(monitor.run())
        app.state.monitor = monitor
        _logger.info("Warehouse monitor started")

        try:
            yield
        finally:
            monitor_task.cancel()
            try:
                await monitor_task
            except asyncio.CancelledError:
                pass
            await monitor.stop()
            await app_store.close()
            _logger.info("Warehouse monitor stopped")

    return lifespan


def create_app(store: RealtimeStore | None = None) -> Starlette:
    """Create and configure the Starlette application.

    Args:
        store: Store to monitor, defaults to the configured backend.

    Returns:
        Configured Starlette application instance.
    """
    configure(get_settings().log_level.upper())

    routes = [
        Route("/health", health_check),
    ]

    return Starlette(routes=routes, lifespan=_make_lifespan(store))
