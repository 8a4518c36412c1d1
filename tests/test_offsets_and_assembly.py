"""
Tests for offset decisions and record assembly.
"""

import json
import logging
from datetime import UTC, datetime, timedelta

import pytest

from bucketflow.core.assembler import RecordAssembler, render_plain, routing_partition
from bucketflow.core.offsets import OffsetTracker
from bucketflow.core.types import ObjectOffset, to_record_value
from bucketflow.exceptions import RemoteOperationFailed

T = datetime(2024, 3, 1, 8, 30, 0, 123000, tzinfo=UTC)


class TestOffsetTracker:
    """Tests for incremental dedup decisions."""

    @pytest.fixture
    def tracker(self):
        return OffsetTracker("my-bucket", clock=lambda: datetime(2024, 3, 2, tzinfo=UTC))

    def test_partition_key(self, tracker):
        assert tracker.partition_key_for("a.json") == {"bucket": "my-bucket", "key": "a.json"}

    def test_same_modification_time_is_processed(self, tracker):
        offset = tracker.compute_new_offset("a.json", T)
        assert tracker.is_already_processed(offset, "a.json", T) is True

    def test_newer_modification_time_is_not_processed(self, tracker):
        offset = tracker.compute_new_offset("a.json", T)
        assert tracker.is_already_processed(offset, "a.json", T + timedelta(milliseconds=1)) is False

    def test_other_key_is_not_processed(self, tracker):
        offset = tracker.compute_new_offset("a.json", T)
        assert tracker.is_already_processed(offset, "b.json", T) is False

    def test_missing_offset(self, tracker):
        assert tracker.is_already_processed(None, "a.json", T) is False
        assert tracker.is_already_processed({}, "a.json", T) is False

    def test_stored_mapping(self, tracker):
        stored = tracker.compute_new_offset("a.json", T).to_dict()
        assert tracker.is_already_processed(stored, "a.json", T) is True

    def test_sub_millisecond_changes_are_ignored(self, tracker):
        offset = tracker.compute_new_offset("a.json", T)
        assert tracker.is_already_processed(offset, "a.json", T + timedelta(microseconds=500)) is True

    def test_missing_recorded_time_counts_as_processed(self, tracker):
        stored = {"object_key": "a.json", "last_modified": None, "processed_at": 0}
        assert tracker.is_already_processed(stored, "a.json", T) is True

    def test_offset_round_trip(self, tracker):
        offset = tracker.compute_new_offset("a.json", T)
        assert offset.to_dict() == {
            "object_key": "a.json",
            "last_modified": 1_709_281_800_123,
            "processed_at": 1_709_337_600_000,
        }
        assert ObjectOffset.from_mapping(offset.to_dict()) == offset


class TestRecordValues:
    """Tests for coercion into the closed record value set."""

    def test_passthrough(self):
        assert to_record_value({"a": [1, "x", None, True, 1.5]}) == {"a": [1, "x", None, True, 1.5]}

    def test_non_finite_floats(self):
        assert to_record_value(float("nan")) == "nan"
        assert to_record_value(float("inf")) == "inf"

    def test_bytes_and_datetimes(self):
        assert to_record_value(b"\x00\x01") == "AAE="
        assert to_record_value(T) == T.isoformat()


class TestRoutingPartition:
    """Tests for deterministic partition derivation."""

    def test_deterministic(self):
        assert routing_partition("customer-1", 100) == routing_partition("customer-1", 100)

    def test_range(self):
        for value in ("a", 1, 2.5, True, {"x": 1}, [1, 2]):
            assert 0 <= routing_partition(value, 7) < 7


class TestRecordAssembler:
    """Tests for RecordAssembler."""

    @pytest.fixture
    def assembler(self, make_config):
        def _make(**overrides):
            config = make_config(**overrides)
            return RecordAssembler(config, OffsetTracker(config.partition_namespace))

        return _make

    def test_metadata_injected(self, assembler, make_descriptor, t0):
        record = assembler().assemble({"id": 1}, make_descriptor("data/a.json", size=12, tag="etag-1"))
        value = json.loads(record.value)
        assert value == {
            "id": 1,
            "__s3_key": "data/a.json",
            "__s3_size": 12,
            "__s3_last_modified": t0.isoformat().replace("+00:00", "Z"),
            "__s3_etag": "etag-1",
        }

    def test_metadata_disabled(self, assembler, make_descriptor):
        record = assembler(include_metadata=False).assemble({"id": 1}, make_descriptor("a.json"))
        assert json.loads(record.value) == {"id": 1}

    def test_metadata_never_overwrites(self, assembler, make_descriptor):
        record = assembler().assemble({"__s3_key": "mine", "___s3_key": "also mine"}, make_descriptor("a.json"))
        value = json.loads(record.value)
        assert value["__s3_key"] == "mine"
        assert value["___s3_key"] == "also mine"
        assert value["____s3_key"] == "a.json"

    def test_missing_etag_is_unknown(self, assembler, make_descriptor):
        record = assembler().assemble({}, make_descriptor("a.json", tag=None))
        assert json.loads(record.value)["__s3_etag"] == "unknown"

    def test_custom_prefix(self, assembler, make_descriptor):
        record = assembler(metadata_prefix="src_").assemble({}, make_descriptor("a.json"))
        assert json.loads(record.value)["src_key"] == "a.json"

    def test_key_defaults_to_object_key(self, assembler, make_descriptor):
        assert assembler().assemble({"id": 1}, make_descriptor("a.json")).key == "a.json"

    def test_key_field(self, assembler, make_descriptor):
        asm = assembler(key_field="id")
        assert asm.assemble({"id": 7}, make_descriptor("a.json")).key == "7"
        assert asm.assemble({"other": 1}, make_descriptor("a.json")).key == "a.json"

    def test_partition_field(self, assembler, make_descriptor):
        asm = assembler(partition_field="customer", partition_count=10)
        first = asm.assemble({"customer": "c-1"}, make_descriptor("a.json"))
        second = asm.assemble({"customer": "c-1"}, make_descriptor("b.json"))
        assert first.partition == second.partition == routing_partition("c-1", 10)
        assert asm.assemble({"other": 1}, make_descriptor("a.json")).partition is None
        assert asm.assemble({"customer": None}, make_descriptor("a.json")).partition is None

    def test_offset_and_partition_key(self, assembler, make_descriptor, t0):
        record = assembler(offset_storage_key="shared").assemble({}, make_descriptor("a.json"))
        assert record.partition_key == {"bucket": "shared", "key": "a.json"}
        assert record.offset.object_key == "a.json"
        assert record.offset.last_modified == t0
        assert record.topic == "events"
        assert record.dead_letter is False

    def test_serialization_fallback(self, assembler, make_descriptor, caplog):
        with caplog.at_level(logging.WARNING):
            record = assembler(include_metadata=False).assemble({"x": float("nan")}, make_descriptor("a.json"))
        assert record.value == "{x=nan}"
        assert "plain text" in caplog.text

    def test_render_plain(self):
        assert render_plain({"a": 1, "b": "x"}) == "{a=1, b=x}"

    def test_dead_letter_record(self, assembler, make_descriptor):
        asm = assembler(dead_letter_topic="events-dlq")
        error = RemoteOperationFailed("fetch", key="a.json", attempts=4, cause=TimeoutError("slow"))
        record = asm.dead_letter(error, make_descriptor("a.json"))

        assert record.topic == "events-dlq"
        assert record.key == "a.json"
        assert record.dead_letter is True
        assert record.headers == {"error_kind": "remote_operation_failed"}
        envelope = json.loads(record.value)
        assert envelope["object_key"] == "a.json"
        assert envelope["error_kind"] == "remote_operation_failed"
        assert "after 4 attempts" in envelope["error"]
