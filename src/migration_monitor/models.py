"""Pydantic models for migration progress tracking."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_STATISTICS_FIELDS = (
    "source_count_snapshot",
    "destination_count_snapshot",
    "percentage_completed",
    "current_rate",
    "avg_rate",
    "expected_duration_left_ms",
    "unprocessed_transaction_count_snapshot",
    "poison_message_count_snapshot",
    "statistics_last_updated_epoch_ms",
    "statistics_last_migration_activity_recorded_epoch_ms",
)


class MigrationStatistics(BaseModel):
    """Statistics produced by one monitoring round for one migration."""

    model_config = ConfigDict(frozen=True)

    source_count_snapshot: int
    destination_count_snapshot: int
    percentage_completed: float
    current_rate: float
    avg_rate: float
    expected_duration_left_ms: int
    unprocessed_transaction_count_snapshot: int
    poison_message_count_snapshot: int
    statistics_last_updated_epoch_ms: int
    statistics_last_migration_activity_recorded_epoch_ms: int


class MigrationConfig(BaseModel):
    """Represents a migration record in the metadata store.

    Rows are created by the migration system; the monitor only rewrites the
    statistics columns and the ``etag``.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    processor_name: str

    # Topology
    source_account: str
    source_database: str
    source_collection: str
    destination_account: str
    destination_database: str
    destination_collection: str
    source_partition_key: str = "/id"
    source_partition_key_value_filter: str | None = None
    destination_partition_key: str | None = None

    start_time_epoch_ms: int

    # Statistics (written by the monitor only)
    source_count_snapshot: int = 0
    destination_count_snapshot: int = 0
    percentage_completed: float = 0.0
    current_rate: float = 0.0
    avg_rate: float = 0.0
    expected_duration_left_ms: int = 0
    unprocessed_transaction_count_snapshot: int = 0
    poison_message_count_snapshot: int = 0
    statistics_last_updated_epoch_ms: int = 0
    statistics_last_migration_activity_recorded_epoch_ms: int = 0

    completed: bool = False
    etag: str | None = None

    @field_validator(*_STATISTICS_FIELDS, mode="before")
    @classmethod
    def _null_statistics_as_zero(cls, value: Any) -> Any:
        # Freshly created rows carry NULL statistics columns
        return 0 if value is None else value

    @property
    def has_partition_key_filter(self) -> bool:
        return bool(self.source_partition_key_value_filter and self.source_partition_key_value_filter.strip())

    @property
    def dead_letter_container_name(self) -> str:
        return self.id.lower().replace("-", "")

    @property
    def display_name(self) -> str:
        return f"{self.destination_database}/{self.destination_collection}"

    def with_statistics(self, statistics: MigrationStatistics) -> "MigrationConfig":
        """Return a copy carrying ``statistics``; every other field passes through."""
        return self.model_copy(update=statistics.model_dump())


class DeadLetterObject(BaseModel):
    """One stored dead-letter batch as seen in a listing."""

    name: str
    etag: str
    metadata: dict[str, str] = Field(default_factory=dict)
