"""Per-migration statistics update under optimistic concurrency."""

import asyncio
import time
from collections.abc import Callable

from migration_monitor.clients.metadata_store import MigrationMetadataStore
from migration_monitor.clients.registry import MigrationHandles
from migration_monitor.config import Settings
from migration_monitor.core.exceptions import ConflictRetryBudgetExceededError, VersionConflictError
from migration_monitor.core.logging import get_logger
from migration_monitor.models import MigrationConfig
from migration_monitor.monitoring.collectors import (
    get_destination_record_count,
    get_poison_message_count,
    get_source_record_count,
    get_unprocessed_transaction_count,
)
from migration_monitor.monitoring.progress import compute_progress
from migration_monitor.monitoring.telemetry import StatisticsTelemetry

logger = get_logger(__name__)


def epoch_ms() -> int:
    return int(time.time() * 1000)


class MigrationProgressTracker:
    """Collects, computes and persists one migration's statistics.

    Every attempt starts from a fresh read of the record, so the version tag used
    for the conditional write always belongs to the snapshot the statistics were
    derived from. Version conflicts are retried without backoff or attempt cap;
    the optional ``conflict_retry_budget_seconds`` bounds the wall-clock time
    spent retrying.
    """

    def __init__(
        self,
        store: MigrationMetadataStore,
        telemetry: StatisticsTelemetry,
        settings: Settings,
        clock: Callable[[], int] = epoch_ms,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.telemetry = telemetry
        self.settings = settings
        self._clock = clock
        self._monotonic = monotonic

    async def track(self, migration: MigrationConfig, handles: MigrationHandles) -> MigrationConfig:
        """Update the statistics of ``migration`` for this round.

        Args:
            migration: Migration as returned by discovery (possibly stale).
            handles: Resolved collector handles.

        Returns:
            MigrationConfig: The snapshot as written, carrying its new version tag.
        """
        budget = self.settings.conflict_retry_budget_seconds
        started = self._monotonic()
        attempts = 0

        while True:
            attempts += 1
            snapshot = await self.store.read_migration(migration.id)
            now_epoch_ms = self._clock()

            results = await asyncio.gather(
                get_poison_message_count(handles.dead_letter, self.settings.failed_doc_separator),
                get_unprocessed_transaction_count(handles.estimator),
                get_source_record_count(handles.source, snapshot),
                get_destination_record_count(handles.destination, snapshot),
                return_exceptions=True,
            )
            # A failed record count aborts the attempt, but only once every collector has finished
            for result in results:
                if isinstance(result, BaseException):
                    raise result
            poison_count, backlog_count, source_count, destination_count = results

            statistics = compute_progress(
                snapshot,
                now_epoch_ms,
                poison_message_count=poison_count,
                unprocessed_transaction_count=backlog_count,
                source_count=source_count,
                destination_count=destination_count,
            )

            try:
                new_etag = await self.store.replace_statistics(snapshot.id, snapshot.etag, statistics)
            except VersionConflictError:
                logger.info(
                    f"Conflict when trying to update statistics for migration "
                    f"'{snapshot.display_name}' ({snapshot.id}), attempt {attempts}"
                )
                if budget is not None and self._monotonic() - started >= budget:
                    raise ConflictRetryBudgetExceededError(snapshot.id, attempts, budget) from None
                continue

            self.telemetry.track_statistics(snapshot, statistics)
            return snapshot.with_statistics(statistics).model_copy(update={"etag": new_etag})
