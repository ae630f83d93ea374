"""Metric collectors: one numeric progress signal each.

The poison-message and backlog collectors never raise; a failure is logged and
reported as ``UNKNOWN_COUNT`` so the rest of the round still lands. Record
counts drive the percentage and rate math, so their failures propagate.
"""

from migration_monitor.clients.dead_letter import DeadLetterContainer
from migration_monitor.clients.metadata_store import ChangeBacklogEstimator
from migration_monitor.clients.record_store import RecordCollection
from migration_monitor.core.constants import (
    DEFAULT_FAILED_DOC_SEPARATOR,
    K_SUCCESSFUL_RETRY_COUNT,
    K_SUCCESSFUL_RETRY_STATUS,
    UNKNOWN_COUNT,
)
from migration_monitor.core.logging import get_logger
from migration_monitor.models import MigrationConfig

logger = get_logger(__name__)


def _parse_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def count_failed_documents(content: str, separator: str = DEFAULT_FAILED_DOC_SEPARATOR) -> int:
    """Number of failed-document records in one dead-letter object body."""
    return content.count(separator) + 1


async def get_poison_message_count(
    container: DeadLetterContainer,
    separator: str = DEFAULT_FAILED_DOC_SEPARATOR,
) -> int:
    """Count dead-letter records that have not been successfully retried yet.

    Objects whose records were all retried get flagged so later rounds can
    skip downloading them.

    Args:
        container: Dead-letter container of the migration.
        separator: Token separating failed-document records in an object body.

    Returns:
        int: Outstanding poison message count, or -1 if it could not be determined.
    """
    logger.debug(f"--> get_poison_message_count {container.name}")
    try:
        poison_message_count = 0
        async with container.connect() as connection:
            async for blob in connection.list_objects():
                retry_status = _parse_int(blob.metadata.get(K_SUCCESSFUL_RETRY_STATUS))
                if retry_status is not None and retry_status > 0:
                    logger.debug(f"All poison messages in '{blob.name}' were retried, skipping")
                    continue

                content = await connection.download_text(blob.name)
                failed_doc_count = count_failed_documents(content, separator)
                successful_retry_count = _parse_int(blob.metadata.get(K_SUCCESSFUL_RETRY_COUNT)) or 0

                logger.debug(
                    f"Dead-letter object '{blob.name}': {failed_doc_count} failed, "
                    f"{successful_retry_count} successfully retried"
                )

                if successful_retry_count >= failed_doc_count:
                    metadata = {**blob.metadata, K_SUCCESSFUL_RETRY_STATUS: "1"}
                    if await connection.set_metadata_if_match(blob.name, metadata, blob.etag):
                        logger.info(f"Marked successful retry status for poison message object '{blob.name}'")

                poison_message_count += max(0, failed_doc_count - successful_retry_count)

        logger.debug(f"<-- get_poison_message_count {poison_message_count}")
        return poison_message_count

    except Exception as e:
        logger.warning(
            f"Failed to get number of poison messages in '{container.name}'. "
            f"Retrying on next round... Exception: {e}",
            exc_info=True,
        )
        return UNKNOWN_COUNT


async def get_unprocessed_transaction_count(estimator: ChangeBacklogEstimator) -> int:
    """Sum the estimated lag over all partitions of the processor group.

    Returns:
        int: Unprocessed transaction count, or -1 if it could not be determined.
    """
    try:
        total = 0
        async for lag in estimator.iter_estimated_lag():
            total += lag
        return total
    except Exception as e:
        logger.warning(
            f"Failed to get estimated number of unprocessed documents for '{estimator.processor_name}'. "
            f"Retrying on next round... Exception: {e}",
            exc_info=True,
        )
        return UNKNOWN_COUNT


async def get_record_count(
    collection: RecordCollection,
    migration: MigrationConfig,
    filter_is_partition_key: bool,
) -> int:
    """Count the records of ``collection`` that belong to the migration.

    Without a partition-key filter this is the collection's metadata count.
    With one, the records matching the filter value are counted.

    Raises:
        Exception: Any store failure, after logging it.
    """
    value_filter = migration.source_partition_key_value_filter
    logger.info(f"Retrieving record count of '{collection.full_name}' with filter '{value_filter}'")

    try:
        if migration.has_partition_key_filter:
            count = await collection.count_matching(
                migration.source_partition_key,
                value_filter,  # type: ignore[arg-type]
                partition_scoped=filter_is_partition_key,
            )
        else:
            count = await collection.count_all()
    except Exception as e:
        logger.error(f"Failed to retrieve record count of '{collection.full_name}': {e}")
        raise

    logger.info(f"Retrieved record count of '{collection.full_name}' - {count}")
    return count


async def get_source_record_count(collection: RecordCollection, migration: MigrationConfig) -> int:
    return await get_record_count(collection, migration, migration.has_partition_key_filter)


async def get_destination_record_count(collection: RecordCollection, migration: MigrationConfig) -> int:
    # The filter only targets a single destination partition when both sides share the key
    filter_is_partition_key = (
        migration.has_partition_key_filter
        and migration.source_partition_key == migration.destination_partition_key
    )
    return await get_record_count(collection, migration, filter_is_partition_key)
