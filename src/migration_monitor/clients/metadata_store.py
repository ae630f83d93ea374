"""Supabase access for migration records and change-backlog leases."""

from collections.abc import AsyncIterator
from uuid import uuid4

from supabase import AsyncClient

from migration_monitor.config import Settings
from migration_monitor.core.exceptions import MigrationNotFoundError, VersionConflictError
from migration_monitor.core.logging import get_logger
from migration_monitor.models import MigrationConfig, MigrationStatistics

logger = get_logger(__name__)


class ChangeBacklogEstimator:
    """Reads per-partition lag estimates of one processor group from the lease table."""

    def __init__(self, client: AsyncClient, lease_table: str, processor_name: str, page_size: int = 100):
        self.client = client
        self.lease_table = lease_table
        self.processor_name = processor_name
        self.page_size = page_size

    async def iter_estimated_lag(self) -> AsyncIterator[int]:
        """Yield the estimated lag of every lease (partition) in the group, page by page."""
        start = 0
        while True:
            response = await (
                self.client.table(self.lease_table)
                .select("lease_token, estimated_lag")
                .eq("processor_name", self.processor_name)
                .order("lease_token")
                .range(start, start + self.page_size - 1)
                .execute()
            )

            rows = response.data or []
            for row in rows:
                yield int(row.get("estimated_lag") or 0)

            if len(rows) < self.page_size:
                break
            start += self.page_size


class MigrationMetadataStore:
    """Client for migration records kept in Supabase.

    Statistics writes use optimistic concurrency: the update is filtered on the
    ``etag`` the caller read, and every successful write stores a new one.
    """

    def __init__(self, async_client: AsyncClient, settings: Settings):
        self.settings = settings
        self.client: AsyncClient = async_client
        self.table = settings.migration_table
        self.page_size = settings.discovery_page_size

    # ==================== Migration Operations ====================

    async def list_active_migrations(self) -> list[MigrationConfig]:
        """Get all migrations that are not completed."""
        migrations: list[MigrationConfig] = []
        start = 0

        while True:
            response = await (
                self.client.table(self.table)
                .select("*")
                .eq("completed", False)
                .order("id")
                .range(start, start + self.page_size - 1)
                .execute()
            )

            if not response.data:
                break

            migrations.extend(MigrationConfig.model_validate(row) for row in response.data)

            # Fewer rows than requested means this was the last page
            if len(response.data) < self.page_size:
                break

            start += self.page_size

        logger.debug(f"Found {len(migrations)} active migrations")
        return migrations

    async def read_migration(self, migration_id: str) -> MigrationConfig:
        """Read the current record, including its version tag.

        Raises:
            MigrationNotFoundError: If no record has this id.
        """
        response = await self.client.table(self.table).select("*").eq("id", migration_id).limit(1).execute()
        if not response.data:
            raise MigrationNotFoundError(migration_id)
        return MigrationConfig.model_validate(response.data[0])

    async def replace_statistics(
        self,
        migration_id: str,
        etag: str | None,
        statistics: MigrationStatistics,
    ) -> str:
        """Write ``statistics`` if the stored version tag still equals ``etag``.

        Args:
            migration_id: Record to update.
            etag: Version tag the statistics were computed from.
            statistics: New statistics columns.

        Returns:
            str: The record's new version tag.

        Raises:
            VersionConflictError: If the record changed since it was read.
        """
        new_etag = uuid4().hex
        data = {**statistics.model_dump(), "etag": new_etag}

        query = self.client.table(self.table).update(data).eq("id", migration_id)
        query = query.is_("etag", "null") if etag is None else query.eq("etag", etag)
        response = await query.execute()

        if not response.data:
            raise VersionConflictError(migration_id, etag)

        logger.debug(f"Updated statistics for migration {migration_id} (etag {etag} -> {new_etag})")
        return new_etag

    # ==================== Change Backlog ====================

    def get_change_backlog_estimator(self, processor_name: str) -> ChangeBacklogEstimator:
        """Build the backlog estimator for a processor group."""
        return ChangeBacklogEstimator(
            self.client,
            self.settings.lease_table,
            processor_name,
            page_size=self.page_size,
        )
