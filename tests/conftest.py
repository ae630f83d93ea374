# conftest.py
import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import pytest

from migration_monitor.config import Settings
from migration_monitor.core.exceptions import MigrationNotFoundError, VersionConflictError
from migration_monitor.models import DeadLetterObject, MigrationConfig, MigrationStatistics

START_EPOCH_MS = 1_700_000_000_000


class FakeDeadLetterContainer:
    """In-memory dead-letter container: name -> (content, metadata)."""

    def __init__(self, objects: dict[str, tuple[str, dict[str, str]]] | None = None, name: str = "deadletter"):
        self.name = name
        self.objects = {
            key: {"content": content, "metadata": dict(metadata), "etag": f'"etag-{idx}"'}
            for idx, (key, (content, metadata)) in enumerate((objects or {}).items())
        }
        self.downloads: list[str] = []
        self.metadata_writes: list[tuple[str, dict[str, str], str]] = []
        self.fail_listing = False
        self.reject_metadata_writes = False
        self.download_delay = 0.0
        self.connections = 0
        self.completed_downloads: list[str] = []

    @asynccontextmanager
    async def connect(self) -> AsyncIterator["FakeDeadLetterContainer"]:
        self.connections += 1
        yield self

    async def list_objects(self) -> AsyncIterator[DeadLetterObject]:
        if self.fail_listing:
            raise RuntimeError("listing failed")
        for key, obj in self.objects.items():
            yield DeadLetterObject(name=key, etag=obj["etag"], metadata=dict(obj["metadata"]))

    async def download_text(self, name: str) -> str:
        self.downloads.append(name)
        if self.download_delay:
            await asyncio.sleep(self.download_delay)
        self.completed_downloads.append(name)
        return self.objects[name]["content"]

    async def set_metadata_if_match(self, name: str, metadata: dict[str, str], etag: str) -> bool:
        self.metadata_writes.append((name, metadata, etag))
        if self.reject_metadata_writes or self.objects[name]["etag"] != etag:
            return False
        self.objects[name]["metadata"] = dict(metadata)
        return True


class FakeEstimator:
    def __init__(self, lags: list[int] | None = None, processor_name: str = "processor-1"):
        self.processor_name = processor_name
        self.lags = lags or []
        self.fail = False

    async def iter_estimated_lag(self) -> AsyncIterator[int]:
        if self.fail:
            raise RuntimeError("estimator unavailable")
        for lag in self.lags:
            yield lag


class FakeRecordCollection:
    def __init__(self, total: int = 0, matching: int = 0, full_name: str = "db/coll"):
        self.full_name = full_name
        self.total = total
        self.matching = matching
        self.error: Exception | None = None
        self.calls: list[tuple[Any, ...]] = []

    async def count_all(self) -> int:
        self.calls.append(("count_all",))
        if self.error:
            raise self.error
        return self.total

    async def count_matching(self, partition_key_path: str, value: str, partition_scoped: bool) -> int:
        self.calls.append(("count_matching", partition_key_path, value, partition_scoped))
        if self.error:
            raise self.error
        return self.matching


class FakeMetadataStore:
    """Migration records with version tags, plus hooks to simulate concurrent writers."""

    def __init__(self, migrations: list[MigrationConfig] | None = None):
        self.records = {m.id: m for m in migrations or []}
        self.reads: list[str] = []
        self.write_attempts: list[tuple[str, str | None]] = []
        self._version = 0
        # Called once per pending conflict right before a write is checked
        self.concurrent_writers: list[Callable[[MigrationConfig], MigrationConfig]] = []

    def _next_etag(self) -> str:
        self._version += 1
        return f"v{self._version}"

    async def list_active_migrations(self) -> list[MigrationConfig]:
        return [m for m in self.records.values() if not m.completed]

    async def read_migration(self, migration_id: str) -> MigrationConfig:
        self.reads.append(migration_id)
        if migration_id not in self.records:
            raise MigrationNotFoundError(migration_id)
        return self.records[migration_id].model_copy()

    async def replace_statistics(
        self, migration_id: str, etag: str | None, statistics: MigrationStatistics
    ) -> str:
        self.write_attempts.append((migration_id, etag))
        if self.concurrent_writers:
            writer = self.concurrent_writers.pop(0)
            current = self.records[migration_id]
            self.records[migration_id] = writer(current).model_copy(update={"etag": self._next_etag()})

        current = self.records[migration_id]
        if current.etag != etag:
            raise VersionConflictError(migration_id, etag)

        new_etag = self._next_etag()
        self.records[migration_id] = current.with_statistics(statistics).model_copy(update={"etag": new_etag})
        return new_etag


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        supabase_url="http://localhost:54321",
        supabase_key="test-key",
        dead_letter_account_name="deadletters",
        health_check_port=0,
        monitor_interval_seconds=0.01,
        vault_init_retry_delay_seconds=0,
    )


@pytest.fixture
def make_migration() -> Callable[..., MigrationConfig]:
    def _make(**overrides: Any) -> MigrationConfig:
        data: dict[str, Any] = {
            "id": "3F2504E0-4F89-11D3-9A0C-0305E82C3301",
            "processor_name": "orders-processor",
            "source_account": "source-account",
            "source_database": "shop",
            "source_collection": "orders",
            "destination_account": "destination-account",
            "destination_database": "shop-v2",
            "destination_collection": "orders",
            "source_partition_key": "/tenantId",
            "destination_partition_key": "/tenantId",
            "start_time_epoch_ms": START_EPOCH_MS,
            "etag": "v0",
        }
        data.update(overrides)
        return MigrationConfig(**data)

    return _make
