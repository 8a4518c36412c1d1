"""
Offset stores.

The orchestrator only reads offsets; the runtime commits them once a
batch has been delivered. Offsets are keyed by the partition key
``{"bucket": ..., "key": ...}``.
"""

from __future__ import annotations

import json
import os
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol

from bucketflow.core.types import OutputRecord
from bucketflow.exceptions import ConfigurationError
from bucketflow.utils.logging import get_logger

logger = get_logger("bucketflow.runtime.offsets")


def _store_key(partition_key: Mapping[str, str]) -> str:
    return f"{partition_key.get('bucket', '')}/{partition_key.get('key', '')}"


class OffsetStore(Protocol):
    """Read and commit per-object offsets."""

    def get(self, partition_key: Mapping[str, str]) -> dict[str, Any] | None: ...

    def commit(self, records: Iterable[OutputRecord]) -> int: ...


class InMemoryOffsetStore:
    """Offsets held in process memory (lost on exit)."""

    def __init__(self, initial: Mapping[str, Mapping[str, Any]] | None = None):
        self._offsets: dict[str, dict[str, Any]] = {k: dict(v) for k, v in (initial or {}).items()}
        self._lock = threading.Lock()

    def get(self, partition_key: Mapping[str, str]) -> dict[str, Any] | None:
        with self._lock:
            offset = self._offsets.get(_store_key(partition_key))
            return dict(offset) if offset is not None else None

    def commit(self, records: Iterable[OutputRecord]) -> int:
        """
        Record the offset of every delivered record.

        When a batch holds several records of one object, the last one wins.

        Returns:
            Number of partition keys updated
        """
        updates: dict[str, dict[str, Any]] = {}
        for record in records:
            updates[_store_key(record.partition_key)] = record.offset.to_dict()
        if not updates:
            return 0
        with self._lock:
            self._offsets.update(updates)
        self._persist()
        return len(updates)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {k: dict(v) for k, v in self._offsets.items()}

    def _persist(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._offsets)


class JsonFileOffsetStore(InMemoryOffsetStore):
    """
    Offsets persisted to a JSON file after every commit.

    The file is replaced atomically, so a crash leaves either the old or
    the new set of offsets on disk.

    Args:
        path: File to load from (if present) and write to
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__(self._load())
        logger.debug(f"Loaded {len(self)} offsets from {self.path}")

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Offset file {self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Offset file {self.path} must contain a JSON object")
        return data

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with self._lock:
            payload = json.dumps(self._offsets, indent=2, sort_keys=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_path, self.path)
