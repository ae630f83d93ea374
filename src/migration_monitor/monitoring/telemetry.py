"""Telemetry sink for per-migration statistics."""

from typing import Any

from opentelemetry import metrics

from migration_monitor.core.logging import get_logger
from migration_monitor.models import MigrationConfig, MigrationStatistics

logger = get_logger(__name__)

METER_NAME = "migration_monitor"


class StatisticsTelemetry:
    """Publishes the derived statistics of each processed migration.

    Every update is logged and recorded on OpenTelemetry gauges. Without a
    configured SDK the gauges are no-ops.

    Attributes:
        source_count: Records in the source collection.
        destination_count: Records in the destination collection.
        percentage_completed: Progress percentage.
        current_rate: Records per second since the last observed activity.
        avg_rate: Records per second since the migration started.
        eta: Expected remaining duration in milliseconds.
    """

    def __init__(self, meter: Any | None = None):
        """Create the gauges.

        Args:
            meter: OpenTelemetry meter; defaults to the global ``migration_monitor`` meter.
        """
        meter = meter or metrics.get_meter(METER_NAME)
        self.source_count = meter.create_gauge(
            name="migration.source.count",
            description="Records in the source collection",
            unit="records",
        )
        self.destination_count = meter.create_gauge(
            name="migration.destination.count",
            description="Records in the destination collection",
            unit="records",
        )
        self.percentage_completed = meter.create_gauge(
            name="migration.percentage_completed",
            description="Migration progress",
            unit="%",
        )
        self.current_rate = meter.create_gauge(
            name="migration.rate.current",
            description="Records migrated per second since the last observed activity",
            unit="records/s",
        )
        self.avg_rate = meter.create_gauge(
            name="migration.rate.average",
            description="Records migrated per second since the migration started",
            unit="records/s",
        )
        self.eta = meter.create_gauge(
            name="migration.eta",
            description="Expected remaining migration duration",
            unit="ms",
        )

    def track_statistics(self, migration: MigrationConfig, statistics: MigrationStatistics) -> None:
        """Emit one migration's statistics."""
        attributes = {"migration.id": migration.id, "migration.destination": migration.display_name}

        self.source_count.set(statistics.source_count_snapshot, attributes)
        self.destination_count.set(statistics.destination_count_snapshot, attributes)
        self.percentage_completed.set(statistics.percentage_completed, attributes)
        self.current_rate.set(statistics.current_rate, attributes)
        self.avg_rate.set(statistics.avg_rate, attributes)
        self.eta.set(statistics.expected_duration_left_ms, attributes)

        logger.info(
            f"Statistics for migration '{migration.display_name}' ({migration.id}): "
            f"source={statistics.source_count_snapshot:,} "
            f"destination={statistics.destination_count_snapshot:,} "
            f"completed={statistics.percentage_completed:.2f}% "
            f"rate={statistics.current_rate:.1f}/s avg={statistics.avg_rate:.1f}/s "
            f"eta={statistics.expected_duration_left_ms}ms "
            f"backlog={statistics.unprocessed_transaction_count_snapshot} "
            f"poison={statistics.poison_message_count_snapshot}"
        )
