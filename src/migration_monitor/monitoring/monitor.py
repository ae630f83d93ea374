"""Round driver: discovers active migrations and keeps their statistics current."""

import asyncio
import os
import signal
from collections.abc import Callable
from typing import Any

from aiohttp import web
from supabase import acreate_client

from migration_monitor.clients.factory import ClientFactory
from migration_monitor.clients.metadata_store import MigrationMetadataStore
from migration_monitor.clients.registry import MonitorClients
from migration_monitor.clients.secrets import VaultSecretStore
from migration_monitor.config import Settings, get_settings
from migration_monitor.core.logging import get_logger, setup_logging
from migration_monitor.monitoring.telemetry import StatisticsTelemetry
from migration_monitor.monitoring.tracker import MigrationProgressTracker, epoch_ms

logger = get_logger(__name__)


class HealthCheckServer:
    """Lightweight HTTP server for health check endpoint."""

    def __init__(
        self,
        port: int = 8080,
        health_check_fn: Callable[[], dict[str, Any]] | None = None,
    ):
        """Initialize the health check server.

        Args:
            port: Port to run the server on.
            health_check_fn: Optional callable that returns health status dict.
        """
        self.port = port
        self.health_check_fn = health_check_fn or (lambda: {"status": "healthy"})
        self.runner: web.AppRunner | None = None

    async def _healthz_handler(self, request: web.Request) -> web.Response:
        return web.json_response(self.health_check_fn())

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/healthz", self._healthz_handler)
        return app

    async def start(self) -> None:
        """Start the health check HTTP server."""
        self.runner = web.AppRunner(self.build_app())
        await self.runner.setup()

        site = web.TCPSite(self.runner, "0.0.0.0", self.port)
        await site.start()
        logger.info(f"Health check server started on port {self.port}")

    async def stop(self) -> None:
        """Stop the health check HTTP server."""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("Health check server stopped")


class MigrationMonitor:
    """Runs monitoring rounds over every active migration, forever.

    Migrations are processed one after another; only the collectors of a
    single migration run concurrently. Any error inside a round ends that
    round early and is logged, and the next round starts after the usual sleep.
    """

    def __init__(
        self,
        settings: Settings,
        store: MigrationMetadataStore,
        clients: MonitorClients,
        tracker: MigrationProgressTracker,
    ):
        self.settings = settings
        self.store = store
        self.clients = clients
        self.tracker = tracker

        self.running = False
        self.shutdown_event = asyncio.Event()
        self.rounds_completed = 0
        self.rounds_failed = 0
        self.last_round_epoch_ms: int | None = None
        self.active_migrations = 0

        self.health_server = (
            HealthCheckServer(port=settings.health_check_port, health_check_fn=self._get_health_status)
            if settings.health_check_port
            else None
        )

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for shutdown between rounds."""

        def signal_handler(sig: int, frame: Any) -> None:
            logger.info(f"Received signal {sig}, stopping after the current round...")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _get_health_status(self) -> dict[str, Any]:
        return {
            "status": "healthy" if self.running else "stopped",
            "rounds_completed": self.rounds_completed,
            "rounds_failed": self.rounds_failed,
            "last_round_epoch_ms": self.last_round_epoch_ms,
            "active_migrations": self.active_migrations,
        }

    async def run_round(self) -> bool:
        """Process every active migration once.

        Returns:
            bool: True if the round completed, False if it was aborted by an error.
        """
        try:
            migrations = await self.store.list_active_migrations()
            self.active_migrations = len(migrations)

            if not migrations:
                logger.info(f"No migration to monitor for process '{os.getpid()}'")
            else:
                logger.info(
                    f"Starting to monitor migration by process '{os.getpid()}' "
                    f"for {len(migrations)} active migrations"
                )

                for migration in migrations:
                    logger.info(
                        f"Starting to retrieve migration status for migration "
                        f"'{migration.display_name}' ({migration.id})"
                    )

                    handles = await self.clients.resolve(migration)
                    await self.tracker.track(migration, handles)

                    logger.info(
                        f"Retrieved migration status for migration '{migration.display_name}' ({migration.id})"
                    )

            self.rounds_completed += 1
            return True

        except Exception as e:
            self.rounds_failed += 1
            logger.warning(f"Failed to retrieve migration statistics. Retrying... Exception: {e}", exc_info=True)
            return False

        finally:
            self.last_round_epoch_ms = epoch_ms()

    async def _sleep_between_rounds(self) -> None:
        try:
            await asyncio.wait_for(self.shutdown_event.wait(), timeout=self.settings.monitor_interval_seconds)
        except TimeoutError:
            pass

    async def run_forever(self) -> None:
        """Run rounds until the process is told to stop."""
        self._setup_signal_handlers()
        self.running = True

        if self.health_server:
            await self.health_server.start()

        logger.info(f"Monitor started, polling every {self.settings.monitor_interval_seconds}s")

        try:
            while not self.shutdown_event.is_set():
                await self.run_round()
                await self._sleep_between_rounds()
        finally:
            self.running = False
            if self.health_server:
                await self.health_server.stop()
            logger.info("Monitor stopped")


async def create_monitor(settings: Settings) -> MigrationMonitor:
    """Bootstrap secrets, the metadata store and the client caches.

    Raises:
        Exception: Any bootstrap failure; there is no degraded mode without them.
    """
    if not settings.supabase_url or not settings.supabase_key:
        raise ValueError("Supabase URL and key must be set")

    secret_store = VaultSecretStore(settings)
    await asyncio.to_thread(secret_store.initialize)

    async_supabase = await acreate_client(settings.supabase_url, settings.supabase_key)
    store = MigrationMetadataStore(async_supabase, settings)

    clients = MonitorClients(ClientFactory(secret_store, settings), store, settings)
    tracker = MigrationProgressTracker(store, StatisticsTelemetry(), settings)
    return MigrationMonitor(settings, store, clients, tracker)


async def main() -> None:
    """Main entry point for the monitor."""
    setup_logging()
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} {settings.app_version} ({settings.environment})")

    try:
        monitor = await create_monitor(settings)
    except Exception as e:
        logger.error(f"UNHANDLED EXCEPTION during initialization: {e}", exc_info=True)
        raise

    try:
        await monitor.run_forever()
    finally:
        await monitor.clients.close()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
