"""
Dead-letter envelopes for objects skipped after a failure.
"""

import json
import time
from dataclasses import asdict, dataclass
from typing import Any

from bucketflow.exceptions import error_kind
from bucketflow.utils.redaction import redact


@dataclass
class DeadLetterEnvelope:
    """
    Error envelope describing one skipped object.

    Serialized as the payload of a dead-letter output record.
    """

    # Redacted error message
    error: str

    # Stable error kind (remote_operation_failed, decode_failed, ...)
    error_kind: str

    # Object that failed
    object_key: str

    # Exception class name
    exception_type: str = ""

    # Epoch milliseconds when the failure was routed
    timestamp: int | None = None

    # Source bucket
    bucket: str | None = None

    def __post_init__(self) -> None:
        """Set default values."""
        if self.timestamp is None:
            self.timestamp = int(time.time() * 1000)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        object_key: str,
        *,
        bucket: str | None = None,
        secrets: tuple[str, ...] = (),
    ) -> "DeadLetterEnvelope":
        """Build an envelope, redacting credentials from the message."""
        return cls(
            error=redact(str(exc) or type(exc).__name__, secrets),
            error_kind=error_kind(exc),
            object_key=object_key,
            exception_type=type(exc).__name__,
            bucket=bucket,
        )
