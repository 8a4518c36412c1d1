"""
Client-side listing filters.

Applied to each listing page after the store returns it and before the
caller sees any descriptor.
"""

from __future__ import annotations

import zlib
from dataclasses import dataclass
from datetime import datetime

from bucketflow.config.pipeline import PipelineConfig
from bucketflow.core.types import ObjectDescriptor


def task_slot(key: str, task_count: int) -> int:
    """Stable task index for an object key (same on every run and host)."""
    return zlib.crc32(key.encode("utf-8")) % task_count


@dataclass(frozen=True)
class ObjectFilter:
    """
    Predicate over ObjectDescriptors.

    - suffix: key must end with it (empty = any)
    - size: inclusive range ``[min_size, max_size]`` (max_size None = unbounded)
    - last modified: half-open window ``[after, before)``; a missing bound is unbounded
    - task split: with more than one task, only keys whose slot equals task_id
    """

    suffix: str = ""
    min_size: int = 0
    max_size: int | None = None
    modified_after: datetime | None = None
    modified_before: datetime | None = None
    task_count: int = 1
    task_id: int = 0

    @classmethod
    def from_config(cls, config: PipelineConfig) -> ObjectFilter:
        return cls(
            suffix=config.suffix,
            min_size=config.min_size,
            max_size=config.max_size,
            modified_after=config.last_modified_after,
            modified_before=config.last_modified_before,
            task_count=config.tasks_max,
            task_id=config.task_id,
        )

    def matches(self, obj: ObjectDescriptor) -> bool:
        if self.suffix and not obj.key.endswith(self.suffix):
            return False
        if obj.size < self.min_size:
            return False
        if self.max_size is not None and obj.size > self.max_size:
            return False
        if self.modified_after is not None and obj.last_modified < self.modified_after:
            return False
        if self.modified_before is not None and obj.last_modified >= self.modified_before:
            return False
        if self.task_count > 1 and task_slot(obj.key, self.task_count) != self.task_id:
            return False
        return True

    def apply(self, objects: list[ObjectDescriptor]) -> list[ObjectDescriptor]:
        """Keep matching descriptors, preserving listing order."""
        return [obj for obj in objects if self.matches(obj)]
