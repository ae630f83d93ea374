"""Tests for the S3 dead-letter container."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from migration_monitor.clients.dead_letter import DeadLetterContainer
from migration_monitor.monitoring.collectors import get_poison_message_count


async def _pages(*pages):
    for page in pages:
        yield page


def _body(data: bytes) -> MagicMock:
    body = MagicMock()
    body.read = AsyncMock(return_value=data)
    return body


@pytest.fixture
def s3():
    """S3 client returned by ``async with session.client("s3")``."""
    return MagicMock()


@pytest.fixture
def session(s3: MagicMock) -> MagicMock:
    mock = MagicMock()
    mock.client.return_value.__aenter__.return_value = s3
    mock.client.return_value.__aexit__.return_value = False
    return mock


@pytest.fixture
def container(session: MagicMock) -> DeadLetterContainer:
    return DeadLetterContainer(session, bucket="dead-letters", name="3f2504e04f8911d3", endpoint_url="http://minio")


class TestListObjects:
    @pytest.mark.asyncio
    async def test_lists_prefix_with_metadata(self, container: DeadLetterContainer, s3: MagicMock):
        s3.get_paginator.return_value.paginate.return_value = _pages(
            {"Contents": [{"Key": "3f2504e04f8911d3/a.json", "ETag": '"list-a"'}]},
            {"Contents": [{"Key": "3f2504e04f8911d3/b.json", "ETag": '"list-b"'}]},
        )
        s3.head_object = AsyncMock(
            side_effect=[
                {"ETag": '"head-a"', "Metadata": {"successfulretrycount": "2"}},
                {"Metadata": {}},
            ]
        )

        async with container.connect() as connection:
            objects = [obj async for obj in connection.list_objects()]

        s3.get_paginator.assert_called_once_with("list_objects_v2")
        s3.get_paginator.return_value.paginate.assert_called_once_with(
            Bucket="dead-letters", Prefix="3f2504e04f8911d3/"
        )
        assert [obj.name for obj in objects] == ["3f2504e04f8911d3/a.json", "3f2504e04f8911d3/b.json"]
        assert objects[0].etag == '"head-a"'
        assert objects[0].metadata == {"successfulretrycount": "2"}
        # Falls back to the listing ETag
        assert objects[1].etag == '"list-b"'

    @pytest.mark.asyncio
    async def test_empty_page(self, container: DeadLetterContainer, s3: MagicMock):
        s3.get_paginator.return_value.paginate.return_value = _pages({"KeyCount": 0})

        async with container.connect() as connection:
            assert [obj async for obj in connection.list_objects()] == []


class TestDownloadText:
    @pytest.mark.asyncio
    async def test_utf8_body(self, container: DeadLetterContainer, s3: MagicMock):
        s3.get_object = AsyncMock(return_value={"Body": _body("a|FAILED-DOC|b".encode())})

        async with container.connect() as connection:
            assert await connection.download_text("3f2504e04f8911d3/a.json") == "a|FAILED-DOC|b"

        s3.get_object.assert_awaited_once_with(Bucket="dead-letters", Key="3f2504e04f8911d3/a.json")

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_replaced(self, container: DeadLetterContainer, s3: MagicMock):
        s3.get_object = AsyncMock(return_value={"Body": _body(b'{"id":"1","n":"\xff"}|FAILED-DOC|{"id":"2"}')})

        async with container.connect() as connection:
            text = await connection.download_text("k")

        assert text == '{"id":"1","n":"\ufffd"}|FAILED-DOC|{"id":"2"}'


class TestSetMetadataIfMatch:
    @pytest.mark.asyncio
    async def test_conditional_copy_replaces_metadata(self, container: DeadLetterContainer, s3: MagicMock):
        s3.copy_object = AsyncMock(return_value={})

        async with container.connect() as connection:
            written = await connection.set_metadata_if_match("k", {"successfulretrystatus": "1"}, '"etag-1"')

        assert written is True
        kwargs = s3.copy_object.await_args.kwargs
        assert kwargs["CopySource"] == {"Bucket": "dead-letters", "Key": "k"}
        assert kwargs["CopySourceIfMatch"] == '"etag-1"'
        assert kwargs["Metadata"] == {"successfulretrystatus": "1"}
        assert kwargs["MetadataDirective"] == "REPLACE"

    @pytest.mark.asyncio
    async def test_precondition_failed_returns_false(self, container: DeadLetterContainer, s3: MagicMock):
        s3.copy_object = AsyncMock(
            side_effect=ClientError(
                {"Error": {"Code": "PreconditionFailed"}, "ResponseMetadata": {"HTTPStatusCode": 412}},
                "CopyObject",
            )
        )

        async with container.connect() as connection:
            assert await connection.set_metadata_if_match("k", {}, '"stale"') is False

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, container: DeadLetterContainer, s3: MagicMock):
        s3.copy_object = AsyncMock(
            side_effect=ClientError(
                {"Error": {"Code": "AccessDenied"}, "ResponseMetadata": {"HTTPStatusCode": 403}},
                "CopyObject",
            )
        )

        async with container.connect() as connection:
            with pytest.raises(ClientError):
                await connection.set_metadata_if_match("k", {}, '"etag-1"')


class TestPoisonScan:
    @pytest.mark.asyncio
    async def test_scan_uses_one_client(self, container: DeadLetterContainer, session: MagicMock, s3: MagicMock):
        keys = [f"3f2504e04f8911d3/{i}.json" for i in range(3)]
        s3.get_paginator.return_value.paginate.return_value = _pages({"Contents": [{"Key": k} for k in keys]})
        s3.head_object = AsyncMock(
            side_effect=[
                {"ETag": '"e0"', "Metadata": {"successfulretrycount": "2"}},
                {"ETag": '"e1"', "Metadata": {}},
                {"ETag": '"e2"', "Metadata": {}},
            ]
        )
        s3.get_object = AsyncMock(side_effect=lambda Bucket, Key: {"Body": _body(b"a|FAILED-DOC|b")})
        s3.copy_object = AsyncMock(return_value={})

        assert await get_poison_message_count(container, "|FAILED-DOC|") == 4

        session.client.assert_called_once_with("s3", endpoint_url="http://minio")
        assert s3.get_object.await_count == 3
        s3.copy_object.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_non_utf8_object_still_counted(self, container: DeadLetterContainer, s3: MagicMock):
        s3.get_paginator.return_value.paginate.return_value = _pages({"Contents": [{"Key": "k"}]})
        s3.head_object = AsyncMock(return_value={"ETag": '"e0"', "Metadata": {}})
        s3.get_object = AsyncMock(return_value={"Body": _body(b'{"id":"1","n":"\xff"}|FAILED-DOC|{"id":"2"}')})

        assert await get_poison_message_count(container, "|FAILED-DOC|") == 2
