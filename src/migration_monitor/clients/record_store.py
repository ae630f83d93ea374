"""Record counting against MongoDB API collections (motor)."""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ReadPreference
from pymongo.read_concern import ReadConcern

from migration_monitor.core.logging import get_logger

logger = get_logger(__name__)


def record_field_name(partition_key_path: str) -> str:
    """Turn a partition key path like ``/tenant/id`` into a dotted field name."""
    name = partition_key_path[1:] if partition_key_path.startswith("/") else partition_key_path
    return name.replace("/", ".")


class RecordCollection:
    """Counting view over one source or destination collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    @classmethod
    def open(cls, client: AsyncIOMotorClient, database: str, collection: str) -> "RecordCollection":
        return cls(client[database][collection])

    @property
    def full_name(self) -> str:
        return f"{self.collection.database.name}/{self.collection.name}"

    def _eventual(self) -> AsyncIOMotorCollection:
        # Counts tolerate staleness, any replica will do
        return self.collection.with_options(
            read_preference=ReadPreference.SECONDARY_PREFERRED,
            read_concern=ReadConcern("available"),
        )

    async def count_all(self) -> int:
        """Total record count from collection metadata (no scan)."""
        return await self.collection.estimated_document_count()

    async def count_matching(self, partition_key_path: str, value: str, partition_scoped: bool) -> int:
        """Count records whose field equals ``value``.

        Args:
            partition_key_path: Field path to match (``/`` separated).
            value: Value the field must equal.
            partition_scoped: The field is this collection's partition key, so the
                count can be routed to the single partition holding ``value``.
                Otherwise the predicate is evaluated across all partitions.

        Returns:
            int: Matching record count.
        """
        field = record_field_name(partition_key_path)
        if not field:
            raise ValueError(f"Invalid partition key path: {partition_key_path!r}")

        collection = self._eventual()
        if partition_scoped:
            return await collection.count_documents({field: value})

        pipeline = [{"$match": {field: value}}, {"$count": "count"}]
        record_count = 0
        async for page in collection.aggregate(pipeline, allowDiskUse=True):
            record_count += int(page.get("count", 0))
        return record_count
