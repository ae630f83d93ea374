"""Progress tracking: collectors, calculator, tracker and round driver."""

from migration_monitor.monitoring.monitor import MigrationMonitor, create_monitor, run
from migration_monitor.monitoring.progress import compute_progress
from migration_monitor.monitoring.telemetry import StatisticsTelemetry
from migration_monitor.monitoring.tracker import MigrationProgressTracker

__all__ = [
    "compute_progress",
    "MigrationProgressTracker",
    "StatisticsTelemetry",
    "MigrationMonitor",
    "create_monitor",
    "run",
]
