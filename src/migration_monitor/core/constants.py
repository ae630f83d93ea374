"""Central constants shared across the migration monitor."""

from typing import Final

# Metadata store tables.
DEFAULT_MIGRATION_TABLE: Final[str] = "migration_config"
DEFAULT_LEASE_TABLE: Final[str] = "migration_leases"

# Dead-letter object metadata keys (S3 lowercases user metadata keys).
K_SUCCESSFUL_RETRY_COUNT: Final[str] = "successfulretrycount"
K_SUCCESSFUL_RETRY_STATUS: Final[str] = "successfulretrystatus"

# Failed-document records inside one dead-letter object are joined by this token.
DEFAULT_FAILED_DOC_SEPARATOR: Final[str] = "|FAILED-DOC|"

# Collector result meaning "value unknown this round".
UNKNOWN_COUNT: Final[int] = -1

# ETA reported when no average rate is available yet.
ETA_FALLBACK_MS: Final[int] = 100 * 24 * 60 * 60 * 1000

# Client application names, reported to the record stores.
SOURCE_CLIENT_APP_NAME: Final[str] = "MigrationMonitor.Source"
DESTINATION_CLIENT_APP_NAME: Final[str] = "MigrationMonitor.Destination"

# Secret paths under "<account>/".
RECORD_STORE_SECRET: Final[str] = "record-store"
OBJECT_STORE_SECRET: Final[str] = "object-store"
K_CONNECTION_STRING: Final[str] = "connection_string"
