"""
Record assembly.

Turns each decoded record into exactly one OutputRecord: injects object
metadata, derives the routing partition and message key, and serializes
the payload.
"""

from __future__ import annotations

import json
import logging
import zlib
from datetime import UTC

from bucketflow.config.pipeline import PipelineConfig
from bucketflow.core.offsets import OffsetTracker
from bucketflow.core.retry.dlq import DeadLetterEnvelope
from bucketflow.core.types import ObjectDescriptor, OutputRecord, RawRecord, RecordValue
from bucketflow.exceptions import SerializationDegraded
from bucketflow.utils.logging import get_logger

UNKNOWN = "unknown"


def _stable_text(value: RecordValue) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def routing_partition(value: RecordValue, partition_count: int) -> int:
    """Deterministic non-negative partition for a field value."""
    return zlib.crc32(_stable_text(value).encode("utf-8")) % partition_count


def render_plain(record: RawRecord) -> str:
    """Best-effort ``{k=v, ...}`` rendering used when JSON encoding fails."""
    return "{" + ", ".join(f"{name}={value}" for name, value in record.items()) + "}"


class RecordAssembler:
    """
    Builds OutputRecords for one pipeline.

    Args:
        config: Validated pipeline configuration
        tracker: Offset tracker used for partition keys and offsets
        logger: Per-pipeline logger
    """

    def __init__(self, config: PipelineConfig, tracker: OffsetTracker, logger: logging.Logger | None = None):
        self.config = config
        self.tracker = tracker
        self.logger = logger or get_logger("bucketflow.assembler")

    def inject_metadata(self, record: RawRecord, obj: ObjectDescriptor) -> RawRecord:
        """
        Add object metadata fields to a record in place.

        Existing fields are never overwritten: when a metadata name is taken,
        the metadata goes under the same name with extra leading underscores.
        """
        prefix = self.config.metadata_prefix
        last_modified = obj.last_modified.astimezone(UTC).isoformat().replace("+00:00", "Z") if obj.last_modified else None
        metadata: dict[str, RecordValue] = {
            "key": obj.key or UNKNOWN,
            "size": obj.size if obj.size is not None else UNKNOWN,
            "last_modified": last_modified or UNKNOWN,
            "etag": obj.content_tag or UNKNOWN,
        }
        for name, value in metadata.items():
            field_name = prefix + name
            while field_name in record:
                field_name = "_" + field_name
            record[field_name] = value
        return record

    def message_key(self, record: RawRecord, obj: ObjectDescriptor) -> str:
        field = self.config.key_field
        if field:
            value = record.get(field)
            if value is not None:
                return _stable_text(value)
        return obj.key

    def partition(self, record: RawRecord) -> int | None:
        field = self.config.partition_field
        if not field or field not in record:
            return None
        value = record[field]
        if value is None:
            return None
        return routing_partition(value, self.config.partition_count)

    def serialize(self, record: RawRecord, obj: ObjectDescriptor) -> str:
        try:
            return json.dumps(record, ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as e:
            self.logger.warning(
                f"Failed to serialize record from {obj.key}, using plain text rendering: {e}",
                extra={"category": SerializationDegraded.__name__},
            )
            return render_plain(record)

    def assemble(self, record: RawRecord, obj: ObjectDescriptor) -> OutputRecord:
        """
        Assemble one decoded record into an OutputRecord.

        Args:
            record: Decoded record (metadata is injected into it in place)
            obj: Descriptor of the object the record came from

        Returns:
            OutputRecord carrying the object's partition key and a fresh offset
        """
        if self.config.include_metadata:
            self.inject_metadata(record, obj)

        # Key and partition are derived after injection so metadata fields can be used
        return OutputRecord(
            partition_key=self.tracker.partition_key_for(obj.key),
            offset=self.tracker.compute_new_offset(obj.key, obj.last_modified),
            topic=self.config.topic,
            partition=self.partition(record),
            key=self.message_key(record, obj),
            value=self.serialize(record, obj),
        )

    def dead_letter(self, exc: BaseException, obj: ObjectDescriptor) -> OutputRecord:
        """
        Error-envelope record for an object skipped after a failure.

        Keyed by the object key and addressed to the dead-letter topic.
        """
        envelope = DeadLetterEnvelope.from_exception(
            exc, obj.key, bucket=self.config.bucket, secrets=self.config.secrets
        )
        return OutputRecord(
            partition_key=self.tracker.partition_key_for(obj.key),
            offset=self.tracker.compute_new_offset(obj.key, obj.last_modified),
            topic=self.config.dead_letter_topic or "",
            key=obj.key,
            value=envelope.to_json(),
            dead_letter=True,
            headers={"error_kind": envelope.error_kind},
        )
