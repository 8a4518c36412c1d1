"""
Retry framework for remote object-store calls.

Linear backoff, interruptible waits, and dead-letter envelopes for skipped objects.
"""

from bucketflow.core.retry.dlq import DeadLetterEnvelope
from bucketflow.core.retry.manager import RetryExecutor
from bucketflow.core.retry.policy import (
    DEFAULT_RETRY_POLICY,
    NO_RETRY_POLICY,
    RetryPolicy,
    RetryState,
    is_retryable_transport_error,
)

__all__ = [
    # Policy
    "RetryPolicy",
    "RetryState",
    "DEFAULT_RETRY_POLICY",
    "NO_RETRY_POLICY",
    "is_retryable_transport_error",
    # Executor
    "RetryExecutor",
    # Dead letters
    "DeadLetterEnvelope",
]
