"""
Offset tracking for processed objects.

Pure decision functions: the runtime owns where offsets are stored, this
module only derives partition keys, decides whether an object needs
processing, and builds new offsets.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from bucketflow.core.types import ObjectOffset, from_epoch_millis, to_epoch_millis
from bucketflow.utils.logging import get_logger

logger = get_logger("bucketflow.offsets")


class OffsetTracker:
    """
    Offset decisions for one bucket namespace.

    Args:
        namespace: ``bucket`` component of every partition key (normally the
            bucket name, or the configured offset storage key)
        clock: Returns the current time; defaults to ``datetime.now(UTC)``
    """

    def __init__(self, namespace: str, clock=None):
        self.namespace = namespace
        self._clock = clock or (lambda: datetime.now(UTC))

    def partition_key_for(self, object_key: str) -> dict[str, str]:
        """Stable partition key identifying (bucket, object key)."""
        return {"bucket": self.namespace, "key": object_key}

    def is_already_processed(
        self,
        last_offset: ObjectOffset | Mapping[str, Any] | None,
        object_key: str,
        current_last_modified: datetime,
    ) -> bool:
        """
        Decide whether an object can be skipped.

        Returns False when there is no prior offset, when the prior offset
        belongs to another key, or when the object was modified after the
        recorded modification time. A prior offset without a recorded
        modification time counts as processed.
        """
        if last_offset is None:
            return False
        if isinstance(last_offset, Mapping):
            if not last_offset:
                return False
            last_offset = ObjectOffset.from_mapping(last_offset)

        if last_offset.object_key != object_key:
            return False

        recorded = last_offset.last_modified
        if recorded is not None and to_epoch_millis(current_last_modified) > to_epoch_millis(recorded):
            logger.debug(f"Object {object_key} was modified after last processing, will reprocess")
            return False

        return True

    def compute_new_offset(self, object_key: str, last_modified: datetime) -> ObjectOffset:
        """Offset recording that ``object_key`` at ``last_modified`` was processed now."""
        # Offsets are stored at millisecond precision
        normalized = from_epoch_millis(to_epoch_millis(last_modified))
        return ObjectOffset(object_key=object_key, last_modified=normalized, processed_at=self._clock())
