"""Clients for the metadata, record, dead-letter and secret stores."""

from migration_monitor.clients.cache import ClientCache
from migration_monitor.clients.dead_letter import DeadLetterContainer
from migration_monitor.clients.factory import ClientFactory
from migration_monitor.clients.metadata_store import ChangeBacklogEstimator, MigrationMetadataStore
from migration_monitor.clients.record_store import RecordCollection
from migration_monitor.clients.registry import MigrationHandles, MonitorClients
from migration_monitor.clients.secrets import VaultSecretStore

__all__ = [
    # Caches
    "ClientCache",
    "MonitorClients",
    "MigrationHandles",
    # Stores
    "ChangeBacklogEstimator",
    "DeadLetterContainer",
    "MigrationMetadataStore",
    "RecordCollection",
    # Bootstrap
    "ClientFactory",
    "VaultSecretStore",
]
