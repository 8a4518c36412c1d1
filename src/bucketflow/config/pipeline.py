"""
Validated pipeline configuration.

PipelineConfig is built once at startup from a Config tree (or a flat
connector-style property map) and never mutated afterwards. Any invalid
value raises ConfigurationError naming the offending key.
"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from bucketflow.config.loader import Config
from bucketflow.exceptions import ConfigurationError
from bucketflow.formats.base import FileFormat


class ReadMode(str, Enum):
    """Whether unchanged objects are re-read every cycle."""

    FULL = "full"
    INCREMENTAL = "incremental"


class ErrorPolicy(str, Enum):
    """What a per-object failure does to the poll cycle."""

    FAIL = "fail"
    SKIP = "skip"


_BUCKET_CHARS = re.compile(r"^[a-z0-9][a-z0-9.-]*[a-z0-9]$")

# Flat connector property names -> dotted config keys
PROPERTY_ALIASES: dict[str, str] = {
    "s3.bucket.name": "s3.bucket",
    "s3.region": "s3.region",
    "s3.endpoint.url": "s3.endpoint_url",
    "s3.path.style.access": "s3.path_style_access",
    "s3.prefix": "filters.prefix",
    "s3.suffix": "filters.suffix",
    "aws.access.key.id": "s3.access_key_id",
    "aws.secret.access.key": "s3.secret_access_key",
    "aws.session.token": "s3.session_token",
    "topic": "topic",
    "poll.interval.ms": "poll.interval_ms",
    "max.objects.per.poll": "poll.max_objects",
    "batch.size": "poll.batch_size",
    "offset.storage.key": "offsets.storage_key",
    "read.mode": "read_mode",
    "file.format": "format.type",
    "csv.delimiter": "format.csv_delimiter",
    "csv.header": "format.csv_header",
    "json.array.mode": "format.json_array_mode",
    "max.retries": "retry.max_retries",
    "retry.backoff.ms": "retry.backoff_ms",
    "connect.timeout.ms": "timeouts.connect_ms",
    "socket.timeout.ms": "timeouts.read_ms",
    "include.metadata": "metadata.include",
    "metadata.field.prefix": "metadata.prefix",
    "last.modified.after": "filters.last_modified_after",
    "last.modified.before": "filters.last_modified_before",
    "min.object.size": "filters.min_size",
    "max.object.size": "filters.max_size",
    "tasks.max": "tasks.max",
    "task.id": "tasks.id",
    "error.handling": "errors.policy",
    "dead.letter.topic": "errors.dead_letter_topic",
    "partition.field": "routing.partition_field",
    "key.field": "routing.key_field",
}


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable snapshot of every pipeline tunable."""

    # Source
    bucket: str
    topic: str
    region: str = "us-east-1"
    endpoint_url: str | None = None
    path_style_access: bool = False
    access_key_id: str | None = None
    secret_access_key: str | None = None
    session_token: str | None = None

    # Listing filters
    prefix: str = ""
    suffix: str = ""
    min_size: int = 0
    max_size: int | None = None
    last_modified_after: datetime | None = None
    last_modified_before: datetime | None = None

    # Polling
    poll_interval_ms: int = 60_000
    max_objects_per_poll: int = 100
    batch_size: int = 1000
    page_size: int = 1000
    reset_token_each_cycle: bool = False

    # Offsets
    read_mode: ReadMode = ReadMode.FULL
    offset_storage_key: str = ""

    # Decoding
    file_format: FileFormat = FileFormat.JSON
    csv_delimiter: str = ","
    csv_header: bool = True
    json_array_mode: bool = False
    encoding: str = "utf-8"

    # Remote calls
    max_retries: int = 3
    retry_backoff_ms: int = 1000
    connect_timeout_ms: int = 10_000
    read_timeout_ms: int = 50_000

    # Record assembly
    include_metadata: bool = True
    metadata_prefix: str = "__s3_"
    partition_field: str | None = None
    key_field: str | None = None
    partition_count: int = 100

    # Failure routing
    error_policy: ErrorPolicy = ErrorPolicy.FAIL
    dead_letter_topic: str | None = None

    # Static task split
    tasks_max: int = 1
    task_id: int = 0

    @property
    def incremental(self) -> bool:
        return self.read_mode is ReadMode.INCREMENTAL

    @property
    def uses_static_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    @property
    def secrets(self) -> tuple[str, ...]:
        """Configured credential values, for log redaction."""
        return tuple(s for s in (self.access_key_id, self.secret_access_key, self.session_token) if s)

    @property
    def partition_namespace(self) -> str:
        """``bucket`` component of every partition key."""
        return self.offset_storage_key or self.bucket

    def describe(self) -> dict[str, Any]:
        """Effective settings with credentials masked (for display)."""
        masked = {"access_key_id", "secret_access_key", "session_token"}
        result: dict[str, Any] = {}
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            if name in masked:
                value = "***" if value else None
            elif isinstance(value, Enum):
                value = value.value
            elif isinstance(value, datetime):
                value = value.isoformat()
            result[name] = value
        return result

    # --- Construction ---------------------------------------------------------

    @classmethod
    def from_config(cls, source: Config | Mapping[str, Any]) -> PipelineConfig:
        """
        Validate a configuration tree into a PipelineConfig.

        Args:
            source: Config object or nested mapping (as loaded from YAML)

        Returns:
            Validated, immutable PipelineConfig

        Raises:
            ConfigurationError: On the first invalid or missing setting
        """
        cfg = source if isinstance(source, Config) else Config(dict(source))
        reader = _Reader(cfg)

        bucket = reader.string("s3.bucket", required=True)
        _validate_bucket_name(bucket)
        topic = reader.string("topic", required=True)

        access_key_id = reader.string("s3.access_key_id") or None
        secret_access_key = reader.string("s3.secret_access_key") or None
        if bool(access_key_id) != bool(secret_access_key):
            raise ConfigurationError(
                "s3.access_key_id and s3.secret_access_key must be provided together "
                "(leave both empty to use ambient credentials)",
                key="s3.access_key_id" if not access_key_id else "s3.secret_access_key",
            )

        min_size = reader.integer("filters.min_size", 0, minimum=0)
        max_size = reader.optional_integer("filters.max_size", minimum=0)
        if max_size is not None and min_size > max_size:
            raise ConfigurationError("filters.min_size cannot be greater than filters.max_size", key="filters.min_size")

        after = reader.timestamp("filters.last_modified_after")
        before = reader.timestamp("filters.last_modified_before")
        if after and before and after >= before:
            raise ConfigurationError(
                "filters.last_modified_after must be earlier than filters.last_modified_before",
                key="filters.last_modified_after",
            )

        delimiter = reader.string("format.csv_delimiter", ",")
        if len(delimiter) != 1:
            raise ConfigurationError(
                f"format.csv_delimiter must be a single character, got {delimiter!r}", key="format.csv_delimiter"
            )

        encoding = reader.string("format.encoding", "utf-8")
        try:
            "".encode(encoding)
        except LookupError:
            raise ConfigurationError(f"Unknown encoding: {encoding}", key="format.encoding") from None

        error_policy = reader.choice("errors.policy", ErrorPolicy, ErrorPolicy.FAIL)
        dead_letter_topic = reader.string("errors.dead_letter_topic") or None
        if error_policy is ErrorPolicy.SKIP and not dead_letter_topic:
            raise ConfigurationError(
                "errors.dead_letter_topic is required when errors.policy is 'skip'", key="errors.dead_letter_topic"
            )

        tasks_max = reader.integer("tasks.max", 1, minimum=1)
        task_id = reader.integer("tasks.id", 0, minimum=0)
        if task_id >= tasks_max:
            raise ConfigurationError(f"tasks.id must be lower than tasks.max ({tasks_max})", key="tasks.id")

        return cls(
            bucket=bucket,
            topic=topic,
            region=reader.string("s3.region", "us-east-1"),
            endpoint_url=reader.url("s3.endpoint_url"),
            path_style_access=reader.boolean("s3.path_style_access", False),
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=reader.string("s3.session_token") or None,
            prefix=reader.string("filters.prefix"),
            suffix=reader.string("filters.suffix"),
            min_size=min_size,
            max_size=max_size,
            last_modified_after=after,
            last_modified_before=before,
            poll_interval_ms=reader.integer("poll.interval_ms", 60_000, minimum=0),
            max_objects_per_poll=reader.integer("poll.max_objects", 100, minimum=1),
            batch_size=reader.integer("poll.batch_size", 1000, minimum=1),
            page_size=reader.integer("poll.page_size", 1000, minimum=1, maximum=1000),
            reset_token_each_cycle=reader.boolean("pagination.reset_each_cycle", False),
            read_mode=reader.choice("read_mode", ReadMode, ReadMode.FULL),
            offset_storage_key=reader.string("offsets.storage_key"),
            file_format=reader.choice("format.type", FileFormat, FileFormat.JSON),
            csv_delimiter=delimiter,
            csv_header=reader.boolean("format.csv_header", True),
            json_array_mode=reader.boolean("format.json_array_mode", False),
            encoding=encoding,
            max_retries=reader.integer("retry.max_retries", 3, minimum=0),
            retry_backoff_ms=reader.integer("retry.backoff_ms", 1000, minimum=0),
            connect_timeout_ms=reader.integer("timeouts.connect_ms", 10_000, minimum=1),
            read_timeout_ms=reader.integer("timeouts.read_ms", 50_000, minimum=1),
            include_metadata=reader.boolean("metadata.include", True),
            metadata_prefix=reader.string("metadata.prefix", "__s3_"),
            partition_field=reader.string("routing.partition_field") or None,
            key_field=reader.string("routing.key_field") or None,
            partition_count=reader.integer("routing.partition_count", 100, minimum=1),
            error_policy=error_policy,
            dead_letter_topic=dead_letter_topic,
            tasks_max=tasks_max,
            task_id=task_id,
        )

    @classmethod
    def from_properties(cls, props: Mapping[str, Any]) -> PipelineConfig:
        """
        Validate a flat connector-style property map (``s3.bucket.name`` etc.).

        Unknown property names are ignored.
        """
        tree: dict[str, Any] = {}
        for name, value in props.items():
            target = PROPERTY_ALIASES.get(name)
            if target is None:
                continue
            node = tree
            *parents, leaf = target.split(".")
            for part in parents:
                node = node.setdefault(part, {})
            node[leaf] = value
        return cls.from_config(tree)


class _Reader:
    """Typed accessors over a Config that raise ConfigurationError."""

    def __init__(self, cfg: Config):
        self.cfg = cfg

    def _raw(self, key: str) -> Any:
        value = self.cfg.get(key)
        if isinstance(value, str):
            value = value.strip()
            if value == "":
                return None
        return value

    def string(self, key: str, default: str = "", *, required: bool = False) -> str:
        value = self._raw(key)
        if value is None:
            if required:
                raise ConfigurationError(f"{key} is required and cannot be empty", key=key)
            return default
        if isinstance(value, (dict, list)):
            raise ConfigurationError(f"{key} must be a string, got {type(value).__name__}", key=key)
        return str(value)

    def url(self, key: str) -> str | None:
        value = self.string(key)
        if not value:
            return None
        if not value.startswith(("http://", "https://")):
            raise ConfigurationError(f"{key} must be an http(s) URL, got {value!r}", key=key)
        return value

    def boolean(self, key: str, default: bool) -> bool:
        value = self._raw(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
        raise ConfigurationError(f"{key} must be a boolean, got {value!r}", key=key)

    def optional_integer(self, key: str, *, minimum: int | None = None, maximum: int | None = None) -> int | None:
        value = self._raw(key)
        if value is None:
            return None
        if isinstance(value, bool):
            raise ConfigurationError(f"{key} must be an integer, got {value!r}", key=key)
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{key} must be an integer, got {value!r}", key=key) from None
        if isinstance(value, float) and value != number:
            raise ConfigurationError(f"{key} must be an integer, got {value!r}", key=key)
        if minimum is not None and number < minimum:
            if minimum == 0:
                raise ConfigurationError(f"{key} cannot be negative", key=key)
            raise ConfigurationError(f"{key} must be >= {minimum}, got {number}", key=key)
        if maximum is not None and number > maximum:
            raise ConfigurationError(f"{key} must be <= {maximum}, got {number}", key=key)
        return number

    def integer(self, key: str, default: int, *, minimum: int | None = None, maximum: int | None = None) -> int:
        value = self.optional_integer(key, minimum=minimum, maximum=maximum)
        return default if value is None else value

    def choice(self, key: str, enum_type: type[Enum], default: Enum) -> Any:
        value = self._raw(key)
        if value is None:
            return default
        try:
            return enum_type(str(value).lower())
        except ValueError:
            allowed = ", ".join(repr(m.value) for m in enum_type)
            raise ConfigurationError(f"{key} must be one of {allowed}, got {value!r}", key=key) from None

    def timestamp(self, key: str) -> datetime | None:
        value = self._raw(key)
        if value is None:
            return None
        if isinstance(value, datetime):
            moment = value
        else:
            text = str(value)
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                moment = datetime.fromisoformat(text)
            except ValueError:
                raise ConfigurationError(
                    f"{key} must be in ISO 8601 format (e.g., 2024-01-01T00:00:00Z), got {value!r}", key=key
                ) from None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
        return moment


def _validate_bucket_name(bucket: str) -> None:
    """Apply S3 bucket naming rules."""
    problem = None
    if not 3 <= len(bucket) <= 63:
        problem = "must be between 3 and 63 characters long"
    elif not _BUCKET_CHARS.match(bucket):
        problem = "can contain lowercase letters, numbers, hyphens, and periods, and must start and end with a letter or number"
    else:
        try:
            ipaddress.IPv4Address(bucket)
            problem = "must not be formatted as an IP address"
        except ValueError:
            pass
    if problem:
        raise ConfigurationError(f"s3.bucket {bucket!r} is invalid: bucket names {problem}", key="s3.bucket")
