"""Progress calculation for one monitoring round.

Everything here is pure: the caller supplies the previous snapshot, the wall
clock and the freshly collected counts.
"""

from migration_monitor.core.constants import ETA_FALLBACK_MS
from migration_monitor.models import MigrationConfig, MigrationStatistics


def compute_progress(
    previous: MigrationConfig,
    now_epoch_ms: int,
    poison_message_count: int,
    unprocessed_transaction_count: int,
    source_count: int,
    destination_count: int,
) -> MigrationStatistics:
    """Derive the new statistics snapshot.

    Args:
        previous: Snapshot as last persisted (freshly read, not from discovery).
        now_epoch_ms: Current wall-clock time in epoch milliseconds.
        poison_message_count: Outstanding dead-letter records, or -1 if unknown.
        unprocessed_transaction_count: Change-backlog lag, or -1 if unknown.
        source_count: Records in the source (filtered) collection.
        destination_count: Records in the destination collection.

    Returns:
        MigrationStatistics: The statistics to persist.
    """
    # Negative when the destination count regressed; recorded as-is
    inserted_count = destination_count - previous.destination_count_snapshot

    last_activity_epoch_ms = max(
        previous.statistics_last_migration_activity_recorded_epoch_ms,
        previous.start_time_epoch_ms,
    )

    if now_epoch_ms != last_activity_epoch_ms:
        current_rate = inserted_count * 1000.0 / (now_epoch_ms - last_activity_epoch_ms)
    else:
        current_rate = 0.0

    elapsed_seconds = (last_activity_epoch_ms - previous.start_time_epoch_ms) // 1000
    avg_rate = destination_count / elapsed_seconds if elapsed_seconds > 0 else 0.0

    if avg_rate > 0:
        eta_ms = int((source_count - destination_count) * 1000 / avg_rate)
    else:
        eta_ms = ETA_FALLBACK_MS

    if source_count == 0:
        percentage = 100.0
    else:
        percentage = min(100.0, max(0.0, destination_count * 100.0 / source_count))

    last_activity_recorded = (
        now_epoch_ms
        if inserted_count > 0
        else previous.statistics_last_migration_activity_recorded_epoch_ms
    )

    return MigrationStatistics(
        source_count_snapshot=source_count,
        destination_count_snapshot=destination_count,
        percentage_completed=percentage,
        current_rate=current_rate,
        avg_rate=avg_rate,
        expected_duration_left_ms=eta_ms,
        unprocessed_transaction_count_snapshot=unprocessed_transaction_count,
        poison_message_count_snapshot=poison_message_count,
        statistics_last_updated_epoch_ms=now_epoch_ms,
        statistics_last_migration_activity_recorded_epoch_ms=last_activity_recorded,
    )
