"""Allow ``python -m migration_monitor``."""

from migration_monitor.monitoring.monitor import run

run()
