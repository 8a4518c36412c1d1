"""
Shared fixtures for the Bucketflow test suite.

No test touches the network: boto3 clients are MagicMocks and transport
failures are real botocore exception instances.
"""

import io
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from bucketflow.config.pipeline import PipelineConfig
from bucketflow.core.types import ObjectDescriptor

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def make_config():
    """Factory for PipelineConfig with fast test defaults (no pacing, no backoff)."""

    def _make(**overrides) -> PipelineConfig:
        values = {
            "bucket": "test-bucket",
            "topic": "events",
            "poll_interval_ms": 0,
            "retry_backoff_ms": 0,
        }
        values.update(overrides)
        return PipelineConfig(**values)

    return _make


@pytest.fixture
def make_descriptor():
    """Factory for ObjectDescriptor."""

    def _make(key: str, size: int = 10, offset_seconds: int = 0, tag: str | None = "abc") -> ObjectDescriptor:
        return ObjectDescriptor(key=key, size=size, last_modified=T0 + timedelta(seconds=offset_seconds), content_tag=tag)

    return _make


@pytest.fixture
def listing_entry():
    """Factory for ListObjectsV2 ``Contents`` entries."""

    def _make(key: str, size: int = 10, last_modified: datetime = T0, etag: str = '"abc"') -> dict:
        return {"Key": key, "Size": size, "LastModified": last_modified, "ETag": etag}

    return _make


@pytest.fixture
def client_error():
    """Factory for botocore ClientError instances."""

    def _make(code: str, status: int = 400, operation: str = "GetObject") -> ClientError:
        return ClientError(
            {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
            operation,
        )

    return _make


@pytest.fixture
def boto_client():
    """MagicMock standing in for boto3.client('s3')."""
    client = MagicMock()
    client.list_objects_v2.return_value = {"Contents": [], "IsTruncated": False}
    return client


@pytest.fixture
def object_store(boto_client, listing_entry):
    """
    Serves objects from a dict through the mocked boto3 client.

    Returns the dict; tests add ``key -> bytes`` entries to it.
    """
    objects: dict[str, bytes] = {}

    def _list_objects_v2(**kwargs):
        contents = [listing_entry(key, size=len(data)) for key, data in sorted(objects.items())]
        return {"Contents": contents, "IsTruncated": False, "KeyCount": len(contents)}

    def _get_object(Bucket, Key):
        return {"Body": io.BytesIO(objects[Key])}

    boto_client.list_objects_v2.side_effect = _list_objects_v2
    boto_client.get_object.side_effect = _get_object
    return objects
