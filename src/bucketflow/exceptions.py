"""
Bucketflow exception hierarchy.

All domain-specific exceptions inherit from BucketflowError, making it easy
to catch any pipeline error with a single base class while still allowing
fine-grained handling when needed.

Hierarchy::

    BucketflowError
    ├── ConfigurationError        - config loading, parsing, validation (fatal at startup)
    ├── InvalidKeyError           - unsafe / malformed object key (per object)
    ├── RemoteOperationFailed     - retry budget exhausted for a remote call
    ├── DecodeFailed              - payload unparsable in the configured format
    └── PipelineStopped           - stop signal arrived during a wait

    SerializationDegraded (UserWarning) - record rendered as plain text instead of JSON
"""

from __future__ import annotations


class BucketflowError(Exception):
    """Base exception for all Bucketflow errors."""

    kind = "unexpected"

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration -----------------------------------------------------------


class ConfigurationError(BucketflowError):
    """Raised when configuration loading, parsing, or validation fails."""

    kind = "configuration"

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message, details={"key": key} if key else None)
        self.key = key


# --- Remote object access ----------------------------------------------------


class InvalidKeyError(BucketflowError):
    """Raised when an object key could escape the bucket namespace."""

    kind = "invalid_key"

    def __init__(self, key: str | None, reason: str) -> None:
        super().__init__(f"Invalid object key {key!r}: {reason}", details={"key": key})
        self.key = key
        self.reason = reason


# Short alias matching the error taxonomy names
InvalidKey = InvalidKeyError


class RemoteOperationFailed(BucketflowError):
    """Raised when a remote call keeps failing after all retries."""

    kind = "remote_operation_failed"

    def __init__(
        self,
        operation: str,
        *,
        key: str | None = None,
        attempts: int = 1,
        cause: Exception | None = None,
    ) -> None:
        message = f"Failed to execute {operation} after {attempts} attempts"
        if key is not None:
            message += f" for key: {key}"
        if cause is not None:
            message += f" ({type(cause).__name__}: {cause})"
        super().__init__(message, details={"operation": operation, "key": key, "attempts": attempts})
        self.operation = operation
        self.key = key
        self.attempts = attempts
        if cause is not None:
            self.__cause__ = cause


# --- Decoding ----------------------------------------------------------------


class DecodeFailed(BucketflowError):
    """Raised when a whole object cannot be decoded in its configured format."""

    kind = "decode_failed"

    def __init__(self, fmt: str, message: str, *, key: str | None = None, cause: Exception | None = None) -> None:
        full = f"{fmt.upper()} decoding failed"
        if key is not None:
            full += f" for {key}"
        full += f": {message}"
        super().__init__(full, details={"format": fmt, "key": key})
        self.format = fmt
        self.key = key
        if cause is not None:
            self.__cause__ = cause


# --- Lifecycle ---------------------------------------------------------------


class PipelineStopped(BucketflowError):
    """Raised when a stop signal interrupts a pacing or backoff wait.

    Never retried and never routed through the skip policy.
    """

    kind = "stopped"


# --- Warnings ----------------------------------------------------------------


class SerializationDegraded(UserWarning):
    """Marker for records rendered with the plain-text fallback."""


def error_kind(exc: BaseException) -> str:
    """Stable kind string for an exception (used in dead-letter envelopes)."""
    if isinstance(exc, BucketflowError):
        return exc.kind
    return "unexpected"
