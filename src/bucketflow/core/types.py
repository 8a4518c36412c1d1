"""
Type definitions for the ingestion pipeline.

Defines object descriptors, offsets, decoded records and output records.
"""

from __future__ import annotations

import base64
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import Any, TypeAlias

# Closed set of values a decoded record field may hold
RecordValue: TypeAlias = "str | int | float | bool | None | list[RecordValue] | dict[str, RecordValue]"

# Ordered field name -> value mapping produced by decoders
RawRecord: TypeAlias = "dict[str, RecordValue]"


def to_record_value(value: Any) -> RecordValue:
    """
    Coerce an arbitrary Python value into the closed RecordValue set.

    Nested mappings and sequences are converted recursively; bytes become
    base64 text, datetimes ISO-8601 text, non-finite floats and anything
    unknown their string rendering.
    """
    if value is None or isinstance(value, (bool, str, int)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Decimal):
        return float(value) if value.is_finite() else str(value)
    if isinstance(value, Mapping):
        return {str(k): to_record_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_record_value(v) for v in value]
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)


def to_epoch_millis(moment: datetime) -> int:
    """Milliseconds since the epoch; naive datetimes are treated as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    # Exact at millisecond precision
    return (moment - _EPOCH) // _ONE_MS


def from_epoch_millis(millis: int | float) -> datetime:
    """Timezone-aware UTC datetime from epoch milliseconds."""
    return _EPOCH + timedelta(milliseconds=int(millis))


@dataclass(frozen=True)
class ObjectDescriptor:
    """One object returned by a listing call."""

    key: str
    size: int
    last_modified: datetime
    content_tag: str | None = None

    @classmethod
    def from_listing(cls, entry: Mapping[str, Any]) -> ObjectDescriptor:
        """Build from a ListObjectsV2 ``Contents`` entry or a HeadObject response."""
        last_modified = entry.get("LastModified")
        if last_modified is None:
            last_modified = datetime.fromtimestamp(0, tz=UTC)
        elif last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=UTC)
        tag = entry.get("ETag")
        return cls(
            key=entry["Key"],
            size=int(entry.get("Size", entry.get("ContentLength", 0)) or 0),
            last_modified=last_modified,
            content_tag=tag.strip('"') if tag else None,
        )


@dataclass(frozen=True)
class ObjectOffset:
    """
    Offset for one object key.

    Stored by the runtime as ``{"object_key", "last_modified", "processed_at"}``
    with both timestamps in epoch milliseconds.
    """

    object_key: str
    last_modified: datetime | None
    processed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "object_key": self.object_key,
            "last_modified": to_epoch_millis(self.last_modified) if self.last_modified else None,
            "processed_at": to_epoch_millis(self.processed_at),
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ObjectOffset:
        last_modified = data.get("last_modified")
        processed_at = data.get("processed_at") or 0
        return cls(
            object_key=str(data.get("object_key") or ""),
            last_modified=from_epoch_millis(last_modified) if last_modified is not None else None,
            processed_at=from_epoch_millis(processed_at),
        )


@dataclass(frozen=True)
class ListingPage:
    """Filtered descriptors from one listing call plus the next-page cursor."""

    objects: tuple[ObjectDescriptor, ...]
    next_token: str | None = None
    # Entries returned by the store before client-side filtering
    listed_count: int = 0

    @property
    def is_last_page(self) -> bool:
        return not self.next_token


@dataclass(frozen=True)
class OutputRecord:
    """
    Record handed to the runtime for delivery.

    ``partition_key`` and ``offset`` let the runtime persist progress;
    ``value`` is the serialized payload.
    """

    partition_key: dict[str, str]
    offset: ObjectOffset
    topic: str
    key: str
    value: str
    partition: int | None = None
    dead_letter: bool = False
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def object_key(self) -> str:
        return self.offset.object_key
