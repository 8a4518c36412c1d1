"""
Reference runtime: offset stores, static task split and the async runner.
"""

from bucketflow.runtime.offset_store import InMemoryOffsetStore, JsonFileOffsetStore, OffsetStore
from bucketflow.runtime.runner import DeliveryStats, PipelineRunner
from bucketflow.runtime.tasks import task_configs

__all__ = [
    "OffsetStore",
    "InMemoryOffsetStore",
    "JsonFileOffsetStore",
    "PipelineRunner",
    "DeliveryStats",
    "task_configs",
]
