"""
Static task split.

Each task lists the whole prefix but keeps only the keys whose stable
hash lands on its task id (see ``bucketflow.connections.filters.task_slot``).
"""

from __future__ import annotations

from dataclasses import replace

from bucketflow.config.pipeline import PipelineConfig


def task_configs(config: PipelineConfig, max_tasks: int) -> list[PipelineConfig]:
    """
    Per-task configurations.

    Args:
        config: Validated base configuration
        max_tasks: Upper bound requested by the runtime

    Returns:
        ``min(max_tasks, config.tasks_max)`` configs with ``task_id`` 0..n-1
    """
    if max_tasks < 1:
        raise ValueError(f"max_tasks must be >= 1, got {max_tasks}")
    count = min(max_tasks, config.tasks_max)
    return [replace(config, tasks_max=count, task_id=task_id) for task_id in range(count)]
