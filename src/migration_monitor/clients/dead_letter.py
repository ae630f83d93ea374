"""S3-compatible dead-letter store access with async support."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aioboto3
from botocore.exceptions import ClientError

from migration_monitor.core.logging import get_logger
from migration_monitor.models import DeadLetterObject

logger = get_logger(__name__)

_PRECONDITION_FAILED_CODES = {"PreconditionFailed", "412"}


def _is_precondition_failed(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in _PRECONDITION_FAILED_CODES or status == 412


class DeadLetterConnection:
    """Operations on one container over a single open S3 client."""

    def __init__(self, s3: Any, bucket: str, prefix: str):
        self.s3 = s3
        self.bucket = bucket
        self.prefix = prefix

    async def list_objects(self) -> AsyncIterator[DeadLetterObject]:
        """Yield every dead-letter object with its metadata and ETag."""
        paginator = self.s3.get_paginator("list_objects_v2")
        async for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix):
            for item in page.get("Contents", []):
                key = item["Key"]
                # Listings don't carry user metadata, fetch it per object
                head = await self.s3.head_object(Bucket=self.bucket, Key=key)
                yield DeadLetterObject(
                    name=key,
                    etag=head.get("ETag") or item.get("ETag", ""),
                    metadata=head.get("Metadata", {}),
                )

    async def download_text(self, name: str) -> str:
        """Download an object as text; invalid UTF-8 bytes become U+FFFD."""
        response = await self.s3.get_object(Bucket=self.bucket, Key=name)
        body = await response["Body"].read()
        logger.debug(f"Downloaded dead-letter object '{name}' ({len(body)} bytes)")
        return body.decode("utf-8", errors="replace")

    async def set_metadata_if_match(self, name: str, metadata: dict[str, str], etag: str) -> bool:
        """Replace an object's metadata if its ETag is still ``etag``.

        Args:
            name: Object key.
            metadata: Complete metadata to store.
            etag: ETag observed when the object was listed.

        Returns:
            bool: True if the metadata was written, False if the object changed meanwhile.
        """
        try:
            await self.s3.copy_object(
                Bucket=self.bucket,
                Key=name,
                CopySource={"Bucket": self.bucket, "Key": name},
                CopySourceIfMatch=etag,
                Metadata=metadata,
                MetadataDirective="REPLACE",
            )
        except ClientError as e:
            if _is_precondition_failed(e):
                logger.info(f"Dead-letter object '{name}' changed concurrently, skipping metadata update")
                return False
            raise
        return True


class DeadLetterContainer:
    """Dead-letter objects of one migration, stored under ``<bucket>/<name>/``.

    The handle itself is cheap and long-lived; each scan opens one S3 client
    through ``connect()`` and reuses it for every request of that scan.
    """

    def __init__(
        self,
        session: aioboto3.Session,
        bucket: str,
        name: str,
        endpoint_url: str | None = None,
    ):
        """Initialize the container handle.

        Args:
            session: aioboto3 session carrying the account credentials.
            bucket: Bucket holding the dead-letter objects of every migration.
            name: Container name; objects live under ``name + "/"``.
            endpoint_url: Optional endpoint for S3-compatible stores.
        """
        self.session = session
        self.bucket = bucket
        self.name = name
        self.prefix = f"{name}/"
        self.endpoint_url = endpoint_url

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[DeadLetterConnection]:
        """Open an S3 client for the duration of one scan."""
        async with self.session.client("s3", endpoint_url=self.endpoint_url) as s3:  # type: ignore
            yield DeadLetterConnection(s3, self.bucket, self.prefix)
