"""
Retry policy configuration for remote object-store calls.

Backoff is linear: the n-th retry waits ``backoff_base * n`` seconds.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple, Type

from botocore.exceptions import BotoCoreError, ClientError

# HTTP statuses from the store that are worth another attempt
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

# Error codes S3 returns for throttling or transient server trouble
RETRYABLE_ERROR_CODES = frozenset(
    {
        "RequestTimeout",
        "RequestTimeTooSkewed",
        "SlowDown",
        "Throttling",
        "ThrottlingException",
        "InternalError",
        "ServiceUnavailable",
    }
)


def is_retryable_transport_error(exc: BaseException) -> bool:
    """
    Classify an exception raised by a remote call.

    Connection problems and timeouts (connect or read) are retryable, as are
    throttling and 5xx responses. Other client errors (missing key, access
    denied, bad request) are not.
    """
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return error.get("Code") in RETRYABLE_ERROR_CODES or status in RETRYABLE_STATUS_CODES
    return isinstance(exc, (BotoCoreError, ConnectionError, TimeoutError))


@dataclass
class RetryPolicy:
    """
    Configuration for retry behavior when a remote call fails.

    Examples:
        >>> policy = RetryPolicy(max_retries=3, backoff_base=1.0)
        >>> [policy.get_delay(n) for n in (1, 2, 3)]
        [1.0, 2.0, 3.0]
    """

    # Maximum number of retries (total executions = max_retries + 1)
    max_retries: int = 3

    # Seconds per retry number (delay = backoff_base * retry_number)
    backoff_base: float = 1.0

    # Only retry these exception types (None = use is_retryable_transport_error)
    retryable_exceptions: Optional[Tuple[Type[BaseException], ...]] = None

    def __post_init__(self):
        """Validate configuration."""
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff_base < 0:
            raise ValueError("backoff_base must be >= 0")

    @classmethod
    def from_millis(cls, max_retries: int, backoff_ms: int) -> "RetryPolicy":
        return cls(max_retries=max_retries, backoff_base=backoff_ms / 1000.0)

    def should_retry(self, exception: BaseException, retries_done: int) -> bool:
        """
        Determine if we should retry after this exception.

        Args:
            exception: The exception that occurred
            retries_done: Retries already performed (0 after the first failure)

        Returns:
            True if we should retry, False otherwise
        """
        if retries_done >= self.max_retries:
            return False

        if self.retryable_exceptions is not None:
            return isinstance(exception, self.retryable_exceptions)

        return is_retryable_transport_error(exception)

    def get_delay(self, retry_number: int) -> float:
        """
        Delay before the given retry (1-based).

        Args:
            retry_number: Which retry is about to happen (1 for the first)

        Returns:
            Delay in seconds
        """
        return self.backoff_base * retry_number


@dataclass
class RetryState:
    """
    State tracking for one retried operation.

    Stores attempt history for observability and debugging.
    """

    # Operation being retried (e.g. "fetch")
    operation: str

    # Object key, where the operation has one
    key: Optional[str] = None

    # Total attempts so far
    total_attempts: int = 0

    # Exceptions encountered (for debugging)
    exceptions: list = field(default_factory=list)

    # Delays between attempts
    delays: list = field(default_factory=list)

    # Whether execution succeeded
    succeeded: bool = False

    def record_attempt(self, exception: Optional[BaseException] = None):
        """Record an attempt and its result."""
        self.total_attempts += 1

        if exception is not None:
            self.exceptions.append(
                {
                    "attempt": self.total_attempts,
                    "exception_type": type(exception).__name__,
                    "exception_message": str(exception),
                    "timestamp": time.time(),
                }
            )

    def record_delay(self, delay: float):
        """Record the delay before next retry."""
        self.delays.append(delay)

    def mark_success(self, result: Any = None):
        """Mark execution as successful."""
        self.succeeded = True


DEFAULT_RETRY_POLICY = RetryPolicy(max_retries=3, backoff_base=1.0)

NO_RETRY_POLICY = RetryPolicy(max_retries=0, backoff_base=0.0)
