"""Process-wide client caches used by the monitor."""

from dataclasses import dataclass

from motor.motor_asyncio import AsyncIOMotorClient

from migration_monitor.clients.cache import ClientCache
from migration_monitor.clients.dead_letter import DeadLetterContainer
from migration_monitor.clients.factory import ClientFactory
from migration_monitor.clients.metadata_store import ChangeBacklogEstimator, MigrationMetadataStore
from migration_monitor.clients.record_store import RecordCollection
from migration_monitor.config import Settings
from migration_monitor.core.constants import DESTINATION_CLIENT_APP_NAME, SOURCE_CLIENT_APP_NAME
from migration_monitor.core.logging import get_logger
from migration_monitor.models import MigrationConfig

logger = get_logger(__name__)


@dataclass(frozen=True)
class MigrationHandles:
    """Everything the collectors need to observe one migration."""

    source: RecordCollection
    destination: RecordCollection
    estimator: ChangeBacklogEstimator
    dead_letter: DeadLetterContainer


class MonitorClients:
    """Owns the source, destination, dead-letter and estimator caches.

    One instance is built at startup and shared by every round, so repeated
    polling never re-establishes connections.
    """

    def __init__(self, factory: ClientFactory, store: MigrationMetadataStore, settings: Settings):
        self.factory = factory
        self.store = store
        self.settings = settings

        self.source_clients: ClientCache[AsyncIOMotorClient] = ClientCache(
            "source",
            lambda account: factory.create_record_client(account, SOURCE_CLIENT_APP_NAME),
        )
        self.destination_clients: ClientCache[AsyncIOMotorClient] = ClientCache(
            "destination",
            lambda account: factory.create_record_client(account, DESTINATION_CLIENT_APP_NAME),
        )
        # Both keyed by processor name
        self.dead_letter_containers: ClientCache[DeadLetterContainer] = ClientCache("dead-letter")
        self.estimators: ClientCache[ChangeBacklogEstimator] = ClientCache("estimator")

    async def resolve(self, migration: MigrationConfig) -> MigrationHandles:
        """Resolve (creating on first use) the handles of one migration."""
        source_client = await self.source_clients.get_or_create(migration.source_account)
        destination_client = await self.destination_clients.get_or_create(migration.destination_account)

        estimator = await self.estimators.get_or_create(
            migration.processor_name,
            lambda: self._create_estimator(migration.processor_name),
        )
        dead_letter = await self.dead_letter_containers.get_or_create(
            migration.processor_name,
            lambda: self._create_dead_letter_container(migration),
        )

        return MigrationHandles(
            source=RecordCollection.open(source_client, migration.source_database, migration.source_collection),
            destination=RecordCollection.open(
                destination_client,
                migration.destination_database,
                migration.destination_collection,
            ),
            estimator=estimator,
            dead_letter=dead_letter,
        )

    async def _create_estimator(self, processor_name: str) -> ChangeBacklogEstimator:
        return self.store.get_change_backlog_estimator(processor_name)

    async def _create_dead_letter_container(self, migration: MigrationConfig) -> DeadLetterContainer:
        account_name = self.settings.dead_letter_account_name
        if not account_name:
            raise ValueError("DEAD_LETTER_ACCOUNT_NAME not configured")
        return await self.factory.create_dead_letter_container(account_name, migration.dead_letter_container_name)

    async def close(self) -> None:
        """Release every cached client."""
        for cache in (self.source_clients, self.destination_clients):
            await cache.close()
        logger.info("Closed record store clients")
